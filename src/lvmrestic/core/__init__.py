# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/core/__init__.py

"""Run orchestration: work lists, batch coordination, telemetry."""
