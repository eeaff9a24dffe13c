#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from numbershop.data.models.user import UserModel
from numbershop.data.models.order import OrderModel
from numbershop.data.models.purchased_number import PurchasedNumberModel, ProvisioningStatus
from numbershop.data.models.provisioning_queue import ProvisioningQueueEntryModel, QueueStatus
from numbershop.data.models.sms import SmsConfigurationModel, SmsFilterRuleModel, SmsRecordModel
from numbershop.data.models.call_record import CallRecordModel

__all__ = [
    "UserModel",
    "OrderModel",
    "PurchasedNumberModel",
    "ProvisioningStatus",
    "ProvisioningQueueEntryModel",
    "QueueStatus",
    "SmsConfigurationModel",
    "SmsFilterRuleModel",
    "SmsRecordModel",
    "CallRecordModel",
]
