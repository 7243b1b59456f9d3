# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/pvbackup/core/router.py

"""
Restore routing: (source provider tag, archive filename) -> target name.

For each provider the rules are tried in declaration order and the first
regex that matches the filename wins. Failing that, the provider's first
rule without a regex is its default. When nothing applies, the global
default target (if configured) is used; otherwise the file is not routed.
"""

import re

from pvbackup.config.manager import RestoreConfig
from pvbackup.config.targets import RestoreRule


class RestoreRouter:
    def __init__(self, rules: list[RestoreRule], default_target: str | None = None) -> None:
        self._rules: dict[str, list[tuple[re.Pattern | None, str]]] = {}
        for rule in rules:
            pattern = re.compile(rule.regex) if rule.regex else None
            self._rules.setdefault(rule.provider.strip(), []).append((pattern, rule.target.strip()))
        self.default_target = default_target

    @classmethod
    def from_config(cls, restore: RestoreConfig) -> "RestoreRouter":
        return cls(restore.rules, restore.default_target)

    def pick_target(self, provider_tag: str, filename: str) -> str | None:
        rules = self._rules.get(provider_tag, [])
        for pattern, target in rules:
            if pattern is not None and pattern.search(filename):
                return target
        for pattern, target in rules:
            if pattern is None:
                return target
        return self.default_target
