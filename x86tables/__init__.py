"""Models of x86_64 descriptor tables, segment descriptors and exception error codes."""

__version__ = "0.1.0"
__all__ = ["tables", "gdt", "errors", "entry", "idt"]