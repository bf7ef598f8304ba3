"""
Arduino Sketch Generation

This module turns packed frames into a complete Arduino sketch for one of
three display libraries. Frame arrays and the frame delay are shared; each
library keeps its own control-flow template because include files,
constructors and blit calls are fixed by the external libraries.

Pure module: every function maps inputs to text with no side effects.
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from string import Template
from typing import Callable, Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

PROGRAM_MEDIA_TYPE = "text/plain"
HEX_VALUES_PER_LINE = 16


class CodeGenerationError(ValueError):
    """Raised when frame data handed to the generator is unusable."""
    pass


class Library(Enum):
    """Display libraries the generated sketch can target."""

    ADAFRUIT_GFX_SSD1306 = "adafruit_gfx_ssd1306"  # monochrome I2C OLED
    ADAFRUIT_GFX_SSD1331 = "adafruit_gfx_ssd1331"  # colour SPI OLED, 1-bit content
    U8G2 = "u8g2"  # page-buffered monochrome

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Union["Library", str, None]) -> "Library":
        """Resolve a library name, falling back to SSD1306 for unknown values."""
        if isinstance(value, Library):
            return value
        try:
            return cls((value or cls.ADAFRUIT_GFX_SSD1306.value).strip().lower())
        except ValueError:
            logger.warning(
                "Unknown library '%s', falling back to %s", value, cls.ADAFRUIT_GFX_SSD1306
            )
            return cls.ADAFRUIT_GFX_SSD1306


DEFAULT_LIBRARY = Library.ADAFRUIT_GFX_SSD1306


def frame_delay_ms(fps: float) -> int:
    """Milliseconds each frame stays on screen, at least 1.

    Rounds half up (62.5 -> 63) rather than Python's banker's rounding.
    """
    if fps is None or fps <= 0 or math.isnan(fps):
        raise CodeGenerationError(f"fps must be > 0, got {fps}")
    return max(1, int(math.floor(1000.0 / fps + 0.5)))


def program_filename(program_id: str) -> str:
    return f"video_to_oled_{program_id}.ino"


def render_frame_array(index: int, frame: Optional[bytes]) -> str:
    """
    Render one packed frame as a PROGMEM array declaration.

    Raises:
        CodeGenerationError: If the frame is None or empty
    """
    if not frame:
        raise CodeGenerationError(f"Frame {index} is empty or invalid")

    hex_bytes = [f"0x{b:02X}" for b in bytes(frame)]
    lines: List[str] = []
    for i in range(0, len(hex_bytes), HEX_VALUES_PER_LINE):
        chunk = hex_bytes[i : i + HEX_VALUES_PER_LINE]
        is_last = i + HEX_VALUES_PER_LINE >= len(hex_bytes)
        lines.append("  " + ", ".join(chunk) + ("" if is_last else ","))

    body = "\n".join(lines)
    return f"const uint8_t PROGMEM frame_{index}[{len(hex_bytes)}] = {{\n{body}\n}};"


def render_frame_arrays(frames_packed: Sequence[Optional[bytes]]) -> str:
    """All frame declarations, in order, separated by blank lines."""
    return "\n\n".join(
        render_frame_array(idx, frame) for idx, frame in enumerate(frames_packed)
    )


def render_frames_index(frame_count: int) -> str:
    names = ", ".join(f"frame_{i}" for i in range(frame_count))
    return f"const uint8_t* const frames[] PROGMEM = {{\n  {names}\n}};"


SSD1306_TEMPLATE = Template("""#include <Wire.h>
#include <Adafruit_GFX.h>
#include <Adafruit_SSD1306.h>

#define SCREEN_WIDTH $width
#define SCREEN_HEIGHT $height
#define OLED_RESET -1

Adafruit_SSD1306 display(SCREEN_WIDTH, SCREEN_HEIGHT, &Wire, OLED_RESET);

$frames

$frames_index

const int FRAME_COUNT = sizeof(frames) / sizeof(frames[0]);
const int FRAME_DELAY = $frame_delay;

void setup() {
  Serial.begin(115200);

  if (!display.begin(SSD1306_SWITCHCAPVCC, 0x3C)) {
    Serial.println(F("SSD1306 allocation failed"));
    for(;;);
  }

  display.clearDisplay();
  display.display();
}

void loop() {
  while (true) {
    for (int frame = 0; frame < FRAME_COUNT; frame++) {
      unsigned long start = millis();

      display.clearDisplay();
      display.drawXBitmap(0, 0, (const uint8_t*)pgm_read_ptr(&frames[frame]), SCREEN_WIDTH, SCREEN_HEIGHT, 1);
      display.display();

      while (millis() - start < FRAME_DELAY) {
      }
    }
  }
}
""")

SSD1331_TEMPLATE = Template("""#include <SPI.h>
#include <Adafruit_GFX.h>
#include <Adafruit_SSD1331.h>

#define SCREEN_WIDTH $width
#define SCREEN_HEIGHT $height
#define CS   10
#define DC   9
#define RST  8

Adafruit_SSD1331 display = Adafruit_SSD1331(&SPI, CS, DC, RST);

$frames

$frames_index

const int FRAME_COUNT = sizeof(frames) / sizeof(frames[0]);
const int FRAME_DELAY = $frame_delay;

void setup() {
  Serial.begin(115200);
  display.begin();
  display.fillScreen(0x0000);
}

void loop() {
  while (true) {
    for (int frame = 0; frame < FRAME_COUNT; frame++) {
      unsigned long start = millis();

      display.fillScreen(0x0000);
      display.drawXBitmap(0, 0, (const uint8_t*)pgm_read_ptr(&frames[frame]), SCREEN_WIDTH, SCREEN_HEIGHT, 0xFFFF);

      while (millis() - start < FRAME_DELAY) {
      }
    }
  }
}
""")

U8G2_TEMPLATE = Template("""#include <U8g2lib.h>
#include <Wire.h>

#define SCREEN_WIDTH $width
#define SCREEN_HEIGHT $height

U8G2_SSD1306_128X64_NONAME_F_HW_I2C u8g2(U8G2_R0, U8X8_PIN_NONE);

$frames

$frames_index

const int FRAME_COUNT = sizeof(frames) / sizeof(frames[0]);
const int FRAME_DELAY = $frame_delay;

void setup() {
  Serial.begin(115200);
  u8g2.begin();
  u8g2.clearBuffer();
  u8g2.sendBuffer();
}

void loop() {
  while (true) {
    for (int frame = 0; frame < FRAME_COUNT; frame++) {
      unsigned long start = millis();

      u8g2.firstPage();
      do {
        u8g2.drawXBMP(0, 0, SCREEN_WIDTH, SCREEN_HEIGHT, (const uint8_t*)pgm_read_ptr(&frames[frame]));
      } while (u8g2.nextPage());

      while (millis() - start < FRAME_DELAY) {
      }
    }
  }
}
""")


def _build(template: Template) -> Callable[[str, str, int, int, int], str]:
    def build(frames: str, frames_index: str, width: int, height: int, frame_delay: int) -> str:
        return template.substitute(
            frames=frames,
            frames_index=frames_index,
            width=width,
            height=height,
            frame_delay=frame_delay,
        )

    return build


generate_ssd1306_code = _build(SSD1306_TEMPLATE)
generate_ssd1331_code = _build(SSD1331_TEMPLATE)
generate_u8g2_code = _build(U8G2_TEMPLATE)

TEMPLATE_BUILDERS: Dict[Library, Callable[[str, str, int, int, int], str]] = {
    Library.ADAFRUIT_GFX_SSD1306: generate_ssd1306_code,
    Library.ADAFRUIT_GFX_SSD1331: generate_ssd1331_code,
    Library.U8G2: generate_u8g2_code,
}


def generate_arduino_code(
    frames_packed: Sequence[Optional[bytes]],
    width: int,
    height: int,
    fps: float,
    library: Union[Library, str, None] = DEFAULT_LIBRARY,
) -> str:
    """
    Generate a complete Arduino sketch that loops the animation.

    Args:
        frames_packed: Packed frames (row-major, LSB-first), in display order
        width: Frame width in pixels (SCREEN_WIDTH)
        height: Frame height in pixels (SCREEN_HEIGHT)
        fps: Playback rate; sets FRAME_DELAY
        library: Target display library; unknown names fall back to SSD1306

    Returns:
        str: Sketch source text

    Raises:
        CodeGenerationError: If no frames are given, a frame is empty, or fps <= 0
    """
    if not frames_packed:
        raise CodeGenerationError("No frame data provided")

    lib = Library.parse(library)
    frame_delay = frame_delay_ms(fps)
    frames_c = render_frame_arrays(frames_packed)
    frames_index = render_frames_index(len(frames_packed))

    logger.debug(
        "Generating %s sketch: %d frames, %dx%d, delay=%dms",
        lib,
        len(frames_packed),
        width,
        height,
        frame_delay,
    )
    return TEMPLATE_BUILDERS[lib](frames_c, frames_index, width, height, frame_delay)
