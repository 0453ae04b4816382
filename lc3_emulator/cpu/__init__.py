"""LC-3 CPU: register file, bit-field helpers, decoder, handlers, disassembler."""
