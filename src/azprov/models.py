"""Data model for provisioned resources.

Resources read back from Azure are plain dataclasses. The VM creation request
is built incrementally with VMConfigBuilder and frozen once with build().
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from azprov.exceptions import ValidationError

DISK_LABEL_PREFIX = "disk_"

# Azure naming rules (resource group / VM resource / Windows computer name)
RESOURCE_GROUP_PATTERN = re.compile(r"^[a-zA-Z0-9_\-\.\(\)]{1,90}$")
VM_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9_.\-]{0,62}[a-zA-Z0-9_])?$")
COMPUTER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]{0,14}$")

# Azure caps the LUN range for data disks
MAX_LUN = 63


def normalize_location(location: str) -> str:
    """Normalize a region for comparison ("West US" -> "westus")."""
    return location.replace(" ", "").lower()


def disk_label(lun: int) -> str:
    """Label used for a data disk at a LUN."""
    return f"{DISK_LABEL_PREFIX}{lun}"


def next_lun(luns: Iterable[int]) -> int:
    """First LUN to use for new disks: one past the highest existing LUN, or 0.

    Examples:
        >>> next_lun([0, 2, 5])
        6
        >>> next_lun([])
        0
    """
    return max(luns, default=-1) + 1


def validate_service_name(name: str) -> None:
    """Raise ValidationError unless name is a valid resource group name."""
    if not name or not RESOURCE_GROUP_PATTERN.match(name):
        raise ValidationError(f"Invalid service name: {name!r}")


def validate_vm_name(name: str, new_vm: bool = False) -> None:
    """Raise ValidationError unless name is a valid VM name.

    Existing VMs only need a valid Azure resource name (up to 64 characters).
    A new Windows VM also uses the name as its computer name, which is limited
    to 15 letters, digits or hyphens.
    """
    if not name or not VM_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid VM name: {name!r}. Must be 1-64 letters, digits, '_', '.' or '-'"
        )
    if new_vm and not COMPUTER_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Invalid name for a new Windows VM: {name!r}. "
            "Must be 1-15 letters, digits or hyphens"
        )


@dataclass(frozen=True)
class Credential:
    """Username/password pair used for the VM admin account."""

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class HostingService:
    """Resource group that hosts the VM."""

    name: str
    location: str


@dataclass(frozen=True)
class DataDisk:
    """A data disk attached (or to be attached) to a VM."""

    size_gb: int
    label: str
    lun: int

    def resource_name(self, vm_name: str) -> str:
        """Managed disk resource name (disk names share the resource group)."""
        return f"{vm_name}-{self.label}"


@dataclass
class VirtualMachine:
    """VM as reported by Azure."""

    service_name: str
    name: str
    location: str
    size: str | None = None
    image: str | None = None
    admin_username: str | None = None
    data_disks: list[DataDisk] = field(default_factory=list)
    power_state: str | None = None
    public_ip: str | None = None
    id: str | None = None

    @property
    def luns(self) -> list[int]:
        return [disk.lun for disk in self.data_disks]

    def is_running(self) -> bool:
        return self.power_state == "VM running"


@dataclass(frozen=True)
class VMCreateRequest:
    """Immutable description of a VM to create."""

    service_name: str
    name: str
    location: str
    size: str
    image: str
    credential: Credential
    data_disks: tuple[DataDisk, ...] = ()
    disk_sku: str = "Standard_LRS"
    boot_diagnostics_storage: str | None = None


class VMConfigBuilder:
    """Accumulate a VM configuration, then freeze it with build().

    Example:
        >>> request = (
        ...     VMConfigBuilder("rg", "vm1", "westus", "Standard_B2s", "Win2022Datacenter")
        ...     .with_credential(Credential("admin", "pw"))
        ...     .add_data_disks(count=2, size_gb=16)
        ...     .build()
        ... )
        >>> [d.lun for d in request.data_disks]
        [0, 1]
    """

    def __init__(self, service_name: str, name: str, location: str, size: str, image: str):
        self._service_name = service_name
        self._name = name
        self._location = location
        self._size = size
        self._image = image
        self._credential: Credential | None = None
        self._disks: list[DataDisk] = []
        self._disk_sku = "Standard_LRS"
        self._boot_diagnostics_storage: str | None = None

    def with_credential(self, credential: Credential) -> "VMConfigBuilder":
        self._credential = credential
        return self

    def with_disk_sku(self, sku: str) -> "VMConfigBuilder":
        self._disk_sku = sku
        return self

    def with_boot_diagnostics(self, storage_account: str | None) -> "VMConfigBuilder":
        self._boot_diagnostics_storage = storage_account
        return self

    def add_data_disk(self, size_gb: int, lun: int, label: str | None = None) -> "VMConfigBuilder":
        """Append one data disk."""
        if size_gb < 1:
            raise ValidationError(f"Disk size must be at least 1 GB, got {size_gb}")
        if not 0 <= lun <= MAX_LUN:
            raise ValidationError(f"LUN {lun} outside 0-{MAX_LUN}")
        self._disks.append(DataDisk(size_gb=size_gb, label=label or disk_label(lun), lun=lun))
        return self

    def add_data_disks(self, count: int, size_gb: int, start_lun: int = 0) -> "VMConfigBuilder":
        """Append ``count`` disks at contiguous LUNs starting at ``start_lun``."""
        if count < 1:
            raise ValidationError(f"Number of disks must be at least 1, got {count}")
        for lun in range(start_lun, start_lun + count):
            self.add_data_disk(size_gb, lun)
        return self

    def build(self) -> VMCreateRequest:
        """Freeze the accumulated configuration.

        Raises:
            ValidationError: If no credential was set or LUNs collide
        """
        if self._credential is None:
            raise ValidationError("A credential is required to create a VM")
        luns = [disk.lun for disk in self._disks]
        if len(luns) != len(set(luns)):
            raise ValidationError(f"Duplicate LUNs in disk configuration: {sorted(luns)}")

        return VMCreateRequest(
            service_name=self._service_name,
            name=self._name,
            location=self._location,
            size=self._size,
            image=self._image,
            credential=self._credential,
            data_disks=tuple(self._disks),
            disk_sku=self._disk_sku,
            boot_diagnostics_storage=self._boot_diagnostics_storage,
        )


def plan_additional_disks(
    existing_luns: Iterable[int], count: int, size_gb: int
) -> tuple[DataDisk, ...]:
    """Disks to append to an existing VM: contiguous LUNs after the current maximum.

    Examples:
        >>> [d.lun for d in plan_additional_disks([0, 2, 5], count=3, size_gb=16)]
        [6, 7, 8]
    """
    if count < 1:
        raise ValidationError(f"Number of disks must be at least 1, got {count}")
    if size_gb < 1:
        raise ValidationError(f"Disk size must be at least 1 GB, got {size_gb}")
    start = next_lun(existing_luns)
    if start + count - 1 > MAX_LUN:
        raise ValidationError(
            f"Cannot attach {count} disks starting at LUN {start}: maximum LUN is {MAX_LUN}"
        )
    return tuple(
        DataDisk(size_gb=size_gb, label=disk_label(lun), lun=lun)
        for lun in range(start, start + count)
    )
