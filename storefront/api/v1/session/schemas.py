"""Guest session schemas"""

from storefront.core.schemas import CamelModel

class GuestSessionResponse(CamelModel):
    success: bool = True
    guest_id: str

class MergeResponse(CamelModel):
    success: bool = True
    merged_items: int = 0
    moved_addresses: int = 0
