from setuptools import setup, find_packages

setup(
    name="oled-art",
    version="0.1.0",
    description="Convert short videos into 1-bit Arduino animations for small OLED displays",
    author="Garrett Johnson",
    packages=find_packages(include=["oled_art", "oled_art.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100",
        "numpy>=1.23.0",
        "opencv-python>=4.6.0.66",
        "Pillow>=9.2.0",
        "pydantic>=2.0",
        "python-multipart>=0.0.6",
        "uvicorn>=0.22",
    ],
    extras_require={
        "test": [
            "httpx>=0.24",
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "oled-art-convert=oled_art.cli:main",
            "oled-art-server=oled_art.main:main",
        ],
    },
    setup_requires=['flake8'],
    tests_require=['pytest', 'pytest-asyncio', 'httpx'],
)
