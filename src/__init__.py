"""LearnBridge Backend.

Synchronizes learner enrollments and course progress from external
learning platforms (Coursera, Pluralsight, Udemy Business) into the
organization's own records.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
