"""
Cluster Kernel — Threshold Constants

All magic numbers live here as module-level defaults.
"""

from typing import Tuple

# --- Variants ---
MODE_FLAT: str = "flat"
MODE_CLUSTERED: str = "clustered"
MODES: Tuple[str, ...] = (MODE_FLAT, MODE_CLUSTERED)

# --- Capacity ---
MAX_DEVICES_PER_CLUSTER: int = 10
MAX_HOSTS_PER_CLUSTER: int = 3

# --- Roles (indexed by position inside a cluster / flat school) ---
ROLE_HOST1: str = "host1"
ROLE_HOST2: str = "host2"
ROLE_HOST3: str = "host3"
ROLE_CLIENT: str = "client"

ROLE_MESSAGES = {
    ROLE_HOST1: "You are the primary host",
    ROLE_HOST2: "You are the secondary host",
    ROLE_HOST3: "You are the tertiary host",
    ROLE_CLIENT: "You are a client device",
}

# --- Cosmetic channel labels (5 GHz band, MHz) ---
FREQUENCY_CHANNELS: Tuple[int, ...] = (
    5180, 5200, 5220, 5240,
    5260, 5280, 5300, 5320,
    5500, 5520, 5540, 5560, 5580, 5600, 5620, 5640, 5660, 5680, 5700, 5720,
    5745, 5765, 5785, 5805, 5825,
)
