# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for LearnBridge.

Domains:
    integrations: External learning-platform configs, vendor adapters,
        and the enrollment and progress sync.
"""
