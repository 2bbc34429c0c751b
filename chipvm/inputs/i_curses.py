#!/usr/bin/env python3

"""
Curses TTY Terminal Input Plugin

Uses a thread to trap Terminal inputs and redirects them to the emulator.  Note
that standard TTY Terminals only understand characters, they do not know when
an actual key is 'pressed' or 'released'.

What we can do (for this plugin) is assume a key is held for a very short time,
and then take advantage of keyboard repeats to fake a 'press' and 'release'.
Each character seen presses its key (if it isn't already held) and pushes back
its release time.  Keys which haven't been seen for a while are released.

We will also quit if ESC (char 27) or CTRL+C (char 3) is detected.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

import queue
from threading import Thread
from time import perf_counter
from .i_null import Inputs as InputsBase

# Terminals don't have separate key press/release, so we have to pause after a character is seen.
KEYBOARD_FAKE_KEYDOWN_TIME = 0.2


# For thread safety, use proper queues to exchange information, avoiding shared variables.
def input_thread(thread_quitter_queue, input_queue, keymap_dict, curses_screen):
    while thread_quitter_queue.empty():
        # This blocks the thread from proceeding, so it won't get the quit message until at least one key is pressed.
        # However, if set as a daemon thread, it should be terminated when the main thread shuts down.
        char = curses_screen.getch()

        if char < 0:
            continue

        char = ord(chr(char).lower())

        if char == 27 or char == 3:  # Detect ESC or CTRL+C
            input_queue.put(None, block=True)
            break

        keymap_char = keymap_dict.get(char)

        if keymap_char is not None:
            try:
                input_queue.put(keymap_char, block=False)
            except queue.Full:
                pass


class Inputs(InputsBase):
    def __init__(self, keymap, renderer, keypad, time_source=perf_counter, start_thread=True):
        super().__init__(keymap, renderer, keypad, force_lowercase=True)

        self.time_source = time_source
        self.release_times = {}  # Key -> time it will be considered released
        self.thread_quitter_queue = queue.Queue(1)  # Used to inform the thread it should quit
        self.input_queue = queue.Queue(16)
        self.thread = None

        if start_thread:
            self.thread = Thread(
                target=input_thread,
                args=(
                    self.thread_quitter_queue,
                    self.input_queue,
                    self.keymap_dict,
                    renderer.get_curses_screen()
                )
            )
            # Terminate the thread when the main program quits (even if currently waiting for a keypress)
            self.thread.daemon = True
            self.thread.start()

    def process_messages(self):
        # Deal with any keys pressed, then release any that have timed out
        now = self.time_source()
        release_time = now + KEYBOARD_FAKE_KEYDOWN_TIME

        while True:
            try:
                # Blocking here would lock up the main thread if nothing was pressed
                key_pressed = self.input_queue.get(block=False)
            except queue.Empty:
                break
            else:
                if key_pressed is None:
                    return True

                self.keypad.set_key(key_pressed, True)
                self.release_times[key_pressed] = release_time

        for key, key_release_time in list(self.release_times.items()):
            if key_release_time <= now:
                self.keypad.set_key(key, False)
                del self.release_times[key]

        return False

    def shutdown(self):
        try:
            self.thread_quitter_queue.put(None, block=False)
        except queue.Full:
            # Something else has already requested the thread quits
            pass

        # Don't wait for the thread to quit (because this is likely to happen after a keypress)
        super().shutdown()
