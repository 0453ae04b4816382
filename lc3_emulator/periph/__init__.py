"""Console devices and memory-mapped peripherals."""
