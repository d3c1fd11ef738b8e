"""Panel gamma and white-point calibration station.

Modules
-------
models : Sample, ChannelSeries and verdict containers
hardware : stimulus/photometer ports, UART driver, emulator
acquisition : gray-level sweep sequencer
analysis : gamma fitting and validation engines
records : CSV record readers and writers
configs : station configuration loader
calibration : end-to-end calibration routine
"""

__version__ = "1.0.0"
