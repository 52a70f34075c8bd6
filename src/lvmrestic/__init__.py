# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/__init__.py

"""lvmrestic - LVM snapshot backups into restic repositories."""
