"""Keep image descriptions, keywords and categories in sync across EXIF, IPTC and XMP."""

__version__ = "1.0.0"
