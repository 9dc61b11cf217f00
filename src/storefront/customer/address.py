"""Customer address book entries.

Orders never reference an Address row directly; they keep the ``snapshot()``
taken at checkout, so editing or deleting an address leaves history intact.
"""

from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.shared.errors import AddressNotFound


@storefront.aggregate
class Address:
    user_id = Identifier(required=True)
    full_name = String(required=True, max_length=255)
    phone = String(required=True, max_length=30)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100, default="VN")

    def belongs_to(self, user_id):
        return str(self.user_id) == str(user_id)

    def snapshot(self):
        return {
            "address_id": str(self.id),
            "full_name": self.full_name,
            "phone": self.phone,
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }


def find_owned_address(user_id, address_id, kind="shipping") -> Address:
    """Load an address that belongs to ``user_id``.

    Unknown ids and ids owned by someone else raise the same ``AddressNotFound``.
    """
    try:
        address = current_domain.repository_for(Address).get(address_id)
    except ObjectNotFoundError:
        raise AddressNotFound(address_id, kind=kind) from None

    if not address.belongs_to(user_id):
        raise AddressNotFound(address_id, kind=kind)
    return address
