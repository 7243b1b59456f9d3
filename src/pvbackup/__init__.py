# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/__init__.py

"""
pvbackup - snapshot-based export and restore of block volumes.

Volumes from zfs pools and lvm thin pools are exported through transient
read-only clones into a backup store, and restored onto existing or newly
provisioned volumes chosen by routing rules.
"""
