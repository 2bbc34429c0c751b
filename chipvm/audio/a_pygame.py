#!/usr/bin/env python3

"""
PyGame Audio Plugin

Plays the buzzer as a looping square wave through PyGame / SDL.  The wave is
built once at startup, so switching the buzzer on and off is just a matter of
starting and stopping playback.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import pygame
from .a_null import Audio as AudioBase

PLAYBACK_FREQUENCY = 44100
BUZZER_FREQUENCY = 440.0
DEFAULT_VOLUME = 0.1


def square_wave(frequency, playback_frequency=PLAYBACK_FREQUENCY):
    # One full cycle of unsigned 8-bit samples, high for the first half
    cycle_length = max(2, int(round(playback_frequency / frequency)))
    half = cycle_length // 2
    return bytes([0xFF] * half + [0x00] * (cycle_length - half))


class Audio(AudioBase):
    def __init__(self, frequency=BUZZER_FREQUENCY):
        pygame.mixer.pre_init(PLAYBACK_FREQUENCY, size=8, channels=1, buffer=512, allowedchanges=0)
        pygame.mixer.init()
        self.sound = pygame.mixer.Sound(buffer=square_wave(frequency))
        self.sound.set_volume(DEFAULT_VOLUME)
        super().__init__()

    def enable_buzzer(self, enabled):
        # If the buzzer is already in the requested state, the sound won't be restarted
        if enabled and not self.buzzer_enabled:
            self.sound.play(-1)
        elif not enabled and self.buzzer_enabled:
            self.sound.stop()

        super().enable_buzzer(enabled)

    def shutdown(self):
        self.sound.stop()
        pygame.mixer.quit()
        super().shutdown()
