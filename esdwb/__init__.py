# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# License:  GNU LGPL v3 or later; see the header of any source file.

from . import errors
from . import datacenter
from . import workflow
from . import schedule
from . import model
from . import scheduler
from . import algorithms

from .datacenter import DataCenter, Vm, VmType, default_vm_types
from .errors import SchedulingError, UnassignedTaskError, UnplaceableTaskError, WorkflowError
from .model import ExtendedFinishMode, TimingModel
from .schedule import Schedule
from .workflow import FileItem, Task, Workflow, connect

from . import _version
__version__ = _version.version
