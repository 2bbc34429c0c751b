#!/usr/bin/env python3

"""
Main Startup Module

Simply call main(args) to start the emulator, replacing args with a dictionary
of options.  This can be done via the Terminal or GUI.

All options must be supplied.  Defaults can be specified with a 'None', apart
from the keymap, which must always be given (see DEFAULT_KEYMAP in constants).
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from random import Random
from .constants import APP_INTRO, APP_COPYRIGHT, CLOCK_SPEED
from .cpu import CPU
from .debugger import Debugger
from .driver import CycleDriver, IntervalClock
from .framebuffer import Framebuffer
from .hostio import Loader
from .keypad import Keypad
from .machine import Machine


class StartupError(Exception):
    pass


def select_plugins(opt_renderer, mute_audio):
    # Returns the (Inputs, Renderer, Audio) classes to use.  If necessary, try PyGame first, then Curses.
    auto_select_renderer = opt_renderer is None

    # flake8: noqa: F401
    if auto_select_renderer or opt_renderer == "pygame":
        # pylint: disable=unused-import, import-outside-toplevel, raise-missing-from
        try:
            import pygame
        except ImportError:
            if auto_select_renderer:
                opt_renderer = "curses"
            else:
                raise StartupError(
                    "PyGame does not appear to be installed."
                )
        else:
            from .inputs.i_pygame import Inputs
            from .renderers.r_pygame import Renderer

            if mute_audio:
                from .audio.a_null import Audio
            else:
                from .audio.a_pygame import Audio

            return Inputs, Renderer, Audio

    if opt_renderer == "curses":
        # pylint: disable=unused-import, import-outside-toplevel, raise-missing-from
        try:
            import curses
        except ImportError:
            if auto_select_renderer:
                raise StartupError(
                    "Neither PyGame nor Curses (or Windows-Curses) appear to be installed."
                )

            raise StartupError(
                "Curses (or Windows-Curses) does not appear to be installed."
            )
        else:
            from .inputs.i_curses import Inputs
            from .renderers.r_curses import Renderer

            # Terminals can handle fixed-length beeps, but not sampled sound
            if mute_audio or mute_audio is None:
                from .audio.a_null import Audio
            else:
                from .audio.a_curses import Audio

            return Inputs, Renderer, Audio

    if opt_renderer == "null":
        # pylint: disable=import-outside-toplevel
        from .inputs.i_null import Inputs
        from .renderers.r_null import Renderer
        from .audio.a_null import Audio

        return Inputs, Renderer, Audio

    raise StartupError("Unknown renderer '{}'.".format(opt_renderer))


def main(args):
    print("".join((APP_INTRO, APP_COPYRIGHT)))
    Inputs, Renderer, Audio = select_plugins(args["renderer"], args["mute"])

    # Read the ROM before touching any host display, so a bad filename fails cleanly
    program = Loader().load_binary(args["filename"])

    renderer = Renderer(
        scale=args["scale"],
        pygame_palette=args["pygame_palette"],
        curses_cursor_mode=args["curses_cursor_mode"]
    )

    inputs = None
    audio = None

    try:
        # Build the machine: RAM (with the font), stack, registers, framebuffer attached to the renderer, and keypad
        keypad = Keypad()
        machine = Machine(framebuffer=Framebuffer(renderer), keypad=keypad)
        machine.load_program(program)

        # Set up host inputs, and link to the chosen rendering module in case it provides inputs too
        inputs = Inputs(args["keymap"], renderer, keypad)
        audio = Audio()

        # Set up debugger and live output if necessary
        debugger = Debugger()
        debugger.set_live(args["debug"])

        seed = args["seed"]
        cpu = CPU(machine, audio=audio, debugger=debugger, rng=Random(seed))
        clock_speed = args["clock_speed"]
        driver = CycleDriver(cpu, IntervalClock(CLOCK_SPEED if clock_speed is None else clock_speed))
        driver.run(inputs)
    finally:
        # The CPU has quit, so shut down the rendering framework.  __del__ cannot be relied upon when using PyPy
        if audio is not None:
            audio.shutdown()

        if inputs is not None:
            inputs.shutdown()

        renderer.shutdown()
