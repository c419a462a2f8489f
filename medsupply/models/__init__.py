from medsupply.models.audit_log import AuditLog
from medsupply.models.users import User
from medsupply.models.permissions import Permission
from medsupply.models.stage_permissions import StagePermission
from medsupply.models.portfolios import Portfolio
from medsupply.models.categories import Category
from medsupply.models.hospitals import Hospital
from medsupply.models.principals import Principal
from medsupply.models.products import Product
from medsupply.models.branches import Branch, BranchContact
from medsupply.models.warehouses import Warehouse
from medsupply.models.doctors import Doctor
from medsupply.models.purchase_orders import PurchaseOrder
from medsupply.models.purchase_order_items import PurchaseOrderItem
from medsupply.models.purchase_order_history import PurchaseOrderHistory
from medsupply.models.invoice_receivings import InvoiceReceiving, InvoiceReceivingItem
from medsupply.models.quality_control import QualityControl, QCProduct, QCItem
from medsupply.models.warehouse_approvals import WarehouseApproval, WarehouseApprovalProduct, ManagerApproval
from medsupply.models.inventory import Inventory, StockMovement
