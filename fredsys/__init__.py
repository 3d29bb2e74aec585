"""Components for scheduling hardware tasks on reconfigurable FPGA slots: parser, scheduler, slots, clients."""

__version__ = "0.1.0"