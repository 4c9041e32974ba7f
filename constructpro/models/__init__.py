from constructpro.models.user import User
from constructpro.models.supplier import PurchaseOrder, Supplier
from constructpro.models.material import Material
from constructpro.models.inventory import MaterialInventory
from constructpro.models.material_request import MaterialRequest
from constructpro.models.material_transaction import MaterialTransaction
from constructpro.models.sequence import MaterialRequestSequence
