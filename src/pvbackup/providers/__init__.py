# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/providers/__init__.py

"""
Volume providers (backup side) and restore providers (restore side) for
the pool and thin backends.
"""
