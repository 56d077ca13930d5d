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

from collections import deque

from ..datacenter import BANDWIDTH, DataCenter
from ..model import TimingModel
from ..schedule import Schedule
from ..scheduler import Scheduler


class NaiveScheduler(Scheduler):
  """
  Baseline scheduler: every task gets its own freshly launched VM of a single type.

  Tasks are visited breadth-first from every entry task. The resulting schedules are
  never used as an answer, they provide reference values for workflow deadline and
  budget (see :func:`workflow_deadline`, :func:`workflow_budget`).
  """
  def __init__(self, workflow, vm_type, vm_types=None, config=None):
    super(NaiveScheduler, self).__init__(workflow, vm_types, config)
    self._vm_type = vm_type

  def get_schedule(self):
    """
    Overriden.
    """
    return self.naive_schedule(self._workflow, self._vm_type, DataCenter(self._vm_types))

  @classmethod
  def naive_schedule(cls, workflow, vm_type, data_center):
    """
    Build the breadth-first one-VM-per-task schedule.

    Args:
      workflow: :class:`esdwb.workflow.Workflow`
      vm_type: type of every launched VM
      data_center: pool to launch VMs from
    """
    schedule = Schedule("Naive", workflow.name, len(workflow))
    visited = set()
    for entry in workflow.entry_tasks:
      if entry.id in visited:
        continue
      queue = deque([entry])
      visited.add(entry.id)
      while queue:
        task = queue.popleft()
        schedule.assign(task, data_center.launch_new_vm(vm_type))
        for child in task.successors:
          if child.id not in visited:
            visited.add(child.id)
            queue.append(child)
    return schedule


def reference_schedule(workflow, vm_type, vm_types=None):
  return NaiveScheduler.naive_schedule(workflow, vm_type, DataCenter(vm_types))


def cost_bounds(workflow, vm_types=None):
  """
  Total cost of the naive schedules on the cheapest and the costliest VM types.

  Returns:
    tuple (lowest_cost, highest_cost)
  """
  data_center = DataCenter(vm_types)
  cheapest = TimingModel(reference_schedule(workflow, data_center.find_cheapest_type(), vm_types))
  costliest = TimingModel(reference_schedule(workflow, data_center.find_costliest_type(), vm_types))
  return cheapest.total_cost(workflow), costliest.total_cost(workflow)


def workflow_deadline(workflow, alpha, vm_types=None, bandwidth=BANDWIDTH):
  """
  Workflow deadline: alpha * estimated makespan of the naive schedule on the fastest VM type.
  """
  fastest_type = DataCenter(vm_types).find_fastest_type()
  model = TimingModel(reference_schedule(workflow, fastest_type, vm_types), bandwidth)
  return alpha * model.estimated_makespan(workflow)


def workflow_budget(workflow, beta, vm_types=None):
  """
  Workflow budget: lowest_cost + beta * (highest_cost - lowest_cost).
  """
  lowest, highest = cost_bounds(workflow, vm_types)
  return lowest + beta * (highest - lowest)


def initial_surplus_budget(workflow, beta, vm_types=None):
  lowest, highest = cost_bounds(workflow, vm_types)
  return beta * (highest - lowest)
