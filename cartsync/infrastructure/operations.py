"""GraphQL operation descriptors for the commerce platform.

Each descriptor names the root field its payload is returned under, so
callers never reach into the response by hand.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Operation:
    """A platform operation.

    Attributes:
        name: GraphQL operation name.
        document: GraphQL document text.
        root_field: Field of ``data`` that holds the result.
    """

    name: str
    document: str
    root_field: str


_MONEY = "centAmount currencyCode"

_INCLUDED_DISCOUNTS = f"""
    includedDiscounts {{
      discountedAmount {{ {_MONEY} }}
      discountRef {{ id }}
      discount {{ id key name(locale: $locale) }}
    }}
"""

CART_FIELDS = f"""
fragment CartFields on Cart {{
  id
  version
  customerId
  businessUnit {{ key }}
  store {{ key }}
  taxMode
  shippingMode
  totalPrice {{ {_MONEY} }}
  lineItems {{
    id
    key
    productId
    name(locale: $locale)
    quantity
    priceMode
    variant {{ id sku }}
    price {{
      value {{ {_MONEY} }}
      discounted {{ value {{ {_MONEY} }} discount {{ id }} }}
    }}
    discountedPricePerQuantity {{
      quantity
      discountedPrice {{
        value {{ {_MONEY} }}
        {_INCLUDED_DISCOUNTS}
      }}
    }}
    totalPrice {{ {_MONEY} }}
    shippingDetails {{ targets {{ addressKey quantity shippingMethodKey }} }}
    custom {{
      type {{ key }}
      customFieldsRaw {{ name value referencedResource {{ ... on KeyValueDocument {{ value }} }} }}
    }}
  }}
  discountCodes {{
    state
    discountCodeRef {{ id }}
    discountCode {{ id code name(locale: $locale) cartDiscountsRef {{ id }} }}
  }}
  discountOnTotalPrice {{
    discountedAmount {{ {_MONEY} }}
    {_INCLUDED_DISCOUNTS}
  }}
  shipping {{
    shippingKey
    shippingAddress {{ key }}
    shippingInfo {{
      shippingMethodName
      price {{ {_MONEY} }}
      discountedPrice {{
        value {{ {_MONEY} }}
        {_INCLUDED_DISCOUNTS}
      }}
    }}
  }}
  itemShippingAddresses {{ key }}
  custom {{ customFieldsRaw {{ name value }} }}
}}
"""


GET_CART = Operation(
    name="GetCartById",
    root_field="cart",
    document=CART_FIELDS
    + """
query GetCartById($id: String!, $locale: Locale) {
  cart(id: $id) { ...CartFields }
}
""",
)

CREATE_CART = Operation(
    name="CreateCart",
    root_field="createCart",
    document=CART_FIELDS
    + """
mutation CreateCart($draft: CartDraft!, $locale: Locale) {
  createCart(draft: $draft) { ...CartFields }
}
""",
)

UPDATE_CART = Operation(
    name="UpdateCart",
    root_field="updateCart",
    document=CART_FIELDS
    + """
mutation UpdateCart($id: String!, $version: Long!, $actions: [CartUpdateAction!]!, $locale: Locale) {
  updateCart(id: $id, version: $version, actions: $actions) { ...CartFields }
}
""",
)

DELETE_CART = Operation(
    name="DeleteCart",
    root_field="deleteCart",
    document=CART_FIELDS
    + """
mutation DeleteCart($id: String!, $version: Long!, $locale: Locale) {
  deleteCart(id: $id, version: $version) { ...CartFields }
}
""",
)

CREATE_OR_UPDATE_CUSTOM_OBJECT = Operation(
    name="CreateOrUpdateCustomObject",
    root_field="createOrUpdateCustomObject",
    document="""
mutation CreateOrUpdateCustomObject($draft: CustomObjectDraft!) {
  createOrUpdateCustomObject(draft: $draft) { id version container key }
}
""",
)
