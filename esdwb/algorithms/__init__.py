# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# This library is free software: you can redistribute it and/or modify
# it under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This library is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Lesser General Public License for more details.
#
# You should have received a copy of the GNU Lesser General Public
# along with this library.  If not, see <http://www.gnu.org/licenses/>.
#


from .esdwb import ESDWB, ModifiedESDWB, LedgerRow, LEDGER_HEADER
from .naive import NaiveScheduler, cost_bounds, workflow_budget, workflow_deadline
from .energy import reduce_energy
