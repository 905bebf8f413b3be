from enum import Enum


class ShipmentStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class Vessel(str, Enum):
    FIRST = "first"
    SECOND = "second"
    THIRD = "third"
    FOURTH = "fourth"


class PackagingInstructions(str, Enum):
    ONE_JUTE_TWO_POLLY = "oneJutetwoPolly"
    ONE_JUTE_ONE_POLLY = "oneJuteOnePolly"


class TeaGrade(str, Enum):
    PD = "PD"
    PD2 = "PD2"
    DUST1 = "DUST1"
    DUST2 = "DUST2"
    PF1 = "PF1"
    BP1 = "BP1"
    FNGS = "FNGS"
    FNGS1 = "FNGS1"
    FNGS2 = "FNGS2"
    BMF = "BMF"
    BMFD = "BMFD"
    BP = "BP"
    BP2 = "BP2"
    DUST = "DUST"
    PF2 = "PF2"
    PF = "PF"
    BOP = "BOP"
    BOPF = "BOPF"
    BMF1 = "BMF1"


class Broker(str, Enum):
    AMBR = "AMBR"
    ANJL = "ANJL"
    ATBL = "ATBL"
    ATLS = "ATLS"
    BICL = "BICL"
    BTBL = "BTBL"
    CENT = "CENT"
    COMK = "COMK"
    CTBL = "CTBL"
    PRME = "PRME"
    PTBL = "PTBL"
    TBEA = "TBEA"
    UNTB = "UNTB"
    VENS = "VENS"
    TTBL = "TTBL"


class StockAction:
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    REDUCED = "REDUCED"
    RESTORED = "RESTORED"
    ASSIGNED = "Stock Assigned"
    UNASSIGNED = "Stock Unassigned"
    DELETED = "Stock Deleted"


class ShipmentAction:
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_UPDATED = "STATUS_UPDATED"
    DELETED = "DELETED"
