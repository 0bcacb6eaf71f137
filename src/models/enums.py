import enum


class OrganizationType(str, enum.Enum):
    BUYER = "BUYER"
    SUPPLIER = "SUPPLIER"
    FORWARDER = "FORWARDER"
    CONSIGNEE = "CONSIGNEE"
    AGENT = "AGENT"
    BROKER = "BROKER"
    TRUCKER = "TRUCKER"
    PLATFORM = "PLATFORM"


class ChangeRequestLineItemAction(str, enum.Enum):
    ADD = "ADD"
    EDIT = "EDIT"
    REMOVE = "REMOVE"
    REPLACE = "REPLACE"
    SHIPPING_INFO = "SHIPPING_INFO"


class MessageAttachmentType(str, enum.Enum):
    ORDER = "ORDER"
    CHANGE_REQUEST = "CHANGE_REQUEST"


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
