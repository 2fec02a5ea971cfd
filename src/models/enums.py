import enum


class OrganizationType(str, enum.Enum):
    BUYER = "BUYER"
    SUPPLIER = "SUPPLIER"
    BOTH = "BOTH"
    PLATFORM = "PLATFORM"


class OrganizationStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class InquiryType(str, enum.Enum):
    PRODUCT_INQUIRY = "PRODUCT_INQUIRY"
    QUOTE_REQUEST = "QUOTE_REQUEST"
    BULK_ORDER = "BULK_ORDER"
    CUSTOM_ORDER = "CUSTOM_ORDER"
    PARTNERSHIP = "PARTNERSHIP"


class InquiryStatus(str, enum.Enum):
    OPEN = "OPEN"
    RESPONDED = "RESPONDED"
    NEGOTIATING = "NEGOTIATING"
    QUOTED = "QUOTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"
    ARCHIVED = "ARCHIVED"


class InquiryTransitionType(str, enum.Enum):
    RESPOND = "RESPOND"
    QUOTE = "QUOTE"
    ACCEPT = "ACCEPT"
    CONVERT = "CONVERT"
    REJECT = "REJECT"
    EXPIRE = "EXPIRE"
    ARCHIVE = "ARCHIVE"
    ASSIGN = "ASSIGN"


class InquiryPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class InquiryUnit(str, enum.Enum):
    PIECES = "PIECES"
    KG = "KG"
    TONS = "TONS"
    LITERS = "LITERS"
    METERS = "METERS"
    BOXES = "BOXES"
    PALLETS = "PALLETS"


class Currency(str, enum.Enum):
    USD = "USD"
    UZS = "UZS"
    EUR = "EUR"
    CNY = "CNY"
    KZT = "KZT"


class Urgency(str, enum.Enum):
    FLEXIBLE = "FLEXIBLE"
    WITHIN_MONTH = "WITHIN_MONTH"
    WITHIN_WEEK = "WITHIN_WEEK"
    IMMEDIATE = "IMMEDIATE"


class ShippingMethod(str, enum.Enum):
    STANDARD = "STANDARD"
    EXPRESS = "EXPRESS"
    FREIGHT = "FREIGHT"
    PICKUP = "PICKUP"
    CUSTOM = "CUSTOM"


class Incoterm(str, enum.Enum):
    EXW = "EXW"
    FCA = "FCA"
    CPT = "CPT"
    CIP = "CIP"
    DAP = "DAP"
    DPU = "DPU"
    DDP = "DDP"
    FAS = "FAS"
    FOB = "FOB"
    CFR = "CFR"
    CIF = "CIF"


class QuoteStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class MessageStatus(str, enum.Enum):
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"


class MessageType(str, enum.Enum):
    TEXT = "TEXT"
    FILE = "FILE"
    SYSTEM = "SYSTEM"


class ThreadKind(str, enum.Enum):
    ORDER = "ORDER"
    INQUIRY = "INQUIRY"


class OrderStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
