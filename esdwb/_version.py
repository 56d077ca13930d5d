# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# License:  GNU LGPL v3 or later; see the header of any source file.

version = "1.0.0"
