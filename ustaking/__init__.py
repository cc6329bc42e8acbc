# MIT License
# Copyright (c) 2025 Hashborn

__version__ = "1.0.0"
