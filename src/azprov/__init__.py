"""azprov - Azure VM and web site provisioning automation.

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Security by design (no credentials in code or logs)
- Fail fast with helpful guidance

azprov ensures a resource group, a Windows VM with data disks, trusts the VM's
remote-management certificate and formats raw disks inside the guest. It also
provisions web sites with app settings and keeps start schedules for VMs.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
