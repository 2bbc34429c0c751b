#!/usr/bin/env python3

"""
Null Audio Plugin

Serves as a base class for other Audio plugins.  Can be used on its own if no
sound is required.

CHIP-8 only has a buzzer, which sounds for as long as the sound timer is above
zero.  The CPU switches it on, and the cycle driver switches it off again.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"


class Audio:
    def __init__(self):
        # Buzzer should be disabled (not playing sounds) by default
        self.buzzer_enabled = False

    def enable_buzzer(self, enabled):
        self.buzzer_enabled = bool(enabled)

    def shutdown(self):
        self.buzzer_enabled = False
