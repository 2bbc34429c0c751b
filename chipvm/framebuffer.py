#!/usr/bin/env python3

"""
Framebuffer Emulator

Pixels are written here, and are only drawn to the actual display (the host
rendering system) when the main loop asks for a refresh.  Calling out to
PyGame/Curses for every single pixel change would slow emulation down, so the
whole bitmap is pushed in one go, and only when something has changed.

Programs cannot write directly into video RAM.  Instead, sprites are drawn to
the screen by XORing them onto the bitmap.  Any pixel that was set and gets
unset by the XOR counts as a collision, which is reported back to the CPU.

Sprites which run off an edge wrap around to the opposite edge.

Every mutation sets a redraw flag.  Whoever presents the display (normally
'refresh_display', or an external renderer calling 'consume_redraw') clears
it again, so the same frame is never presented twice.
"""

__copyright__ = "Copyright (C) 2022 Gregory Maynard-Hoare"
__license__ = "GNU Affero General Public License v3.0"

from .constants import APP_NAME, VID_WIDTH, VID_HEIGHT
from .ram import RAM


class FramebufferError(Exception):
    pass


class Framebuffer:
    def __init__(self, renderer=None, vid_width=VID_WIDTH, vid_height=VID_HEIGHT):
        if vid_width <= 0 or vid_height <= 0:
            raise FramebufferError("Display must be at least 1x1 pixels")

        self.renderer = renderer
        self.vid_width = vid_width
        self.vid_height = vid_height
        self.vid_size = vid_width * vid_height
        # One byte per pixel.  Not the most compact, but the fastest to XOR and read back.
        self.vram = RAM(1 << (self.vid_size - 1).bit_length())
        self.needs_redraw = True  # Nothing has been presented yet

        if renderer is not None:
            renderer.set_resolution(vid_width, vid_height)
            self.report_perf()

    def clear(self):
        self.vram.clear()
        self.needs_redraw = True

    def get_pixel(self, x, y):
        # Wraps the same way as xor_pixel
        return self.vram.read((y % self.vid_height) * self.vid_width + x % self.vid_width) != 0

    def xor_pixel(self, x, y):
        # Returns flagging any collision
        x %= self.vid_width
        y %= self.vid_height
        vram_loc = y * self.vid_width + x
        pixel = self.vram.read(vram_loc)
        self.vram.write(vram_loc, pixel ^ 1)
        self.needs_redraw = True

        return pixel != 0

    def draw_sprite(self, x, y, rows):
        # Sprites are always 8 pixels wide, most-significant bit on the left.  Only set bits are XORed in.
        collided = False

        for row_num, row in enumerate(rows):
            for col_num in range(8):
                if row & (0x80 >> col_num) and self.xor_pixel(x + col_num, y + row_num):
                    # Don't stop drawing.  Set the flag, and never unset it for this sprite.
                    collided = True

        self.needs_redraw = True
        return collided

    def iter_pixels(self):
        for y in range(self.vid_height):
            for x in range(self.vid_width):
                yield x, y, self.get_pixel(x, y)

    def consume_redraw(self):
        needs_redraw = self.needs_redraw
        self.needs_redraw = False
        return needs_redraw

    def refresh_display(self):
        # Called at the display rate, whether or not anything changed, so the renderer can also catch up on title
        # updates and host window resizes.  Returns whether new content was presented.
        if self.renderer is None:
            return False

        renderer = self.renderer
        content_changed = self.consume_redraw()

        if content_changed:
            for x, y, pixel in self.iter_pixels():
                renderer.set_pixel(x, y, int(pixel))

        renderer.refresh_display(content_changed)
        return content_changed

    def get_vid_size(self):
        return self.vid_width, self.vid_height

    def as_text(self, on="#", off="."):
        # For debugging
        return "\n".join(
            "".join(on if self.get_pixel(x, y) else off for x in range(self.vid_width))
            for y in range(self.vid_height)
        )

    def report_perf(self, fps=0, ops=0):
        if self.renderer is not None:
            self.renderer.set_title("{} - {} FPS, {} OPS".format(APP_NAME, fps, ops))
