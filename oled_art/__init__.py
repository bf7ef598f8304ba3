"""
Video to OLED art package.

This package provides:
- Frame sampling, rasterization and 1-bit quantization of short video clips
- Row-major, LSB-first bit packing for drawXBitmap/drawXBMP style primitives
- Arduino sketch generation for SSD1306, SSD1331 and U8g2 displays
- A FastAPI service and a command-line converter around the pipeline
"""

__version__ = "0.1.0"
