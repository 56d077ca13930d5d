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

"""
Timing, cost and energy model of a workflow running on a (partial) schedule.

Two families of times are defined:

* earliest/latest start and finish times (EST, EFT, LST, LFT) - ignore VM serialization,
  used on reference schedules to derive makespan estimates and per-task deadlines.

* possible/actual start and finish times (PST, AST, AFT) - honor the order of tasks on each VM,
  used while building the final schedule and by the energy optimizer.

All values are recomputed lazily and cached until the schedule changes
(see :attr:`esdwb.schedule.Schedule.generation`).
"""

import math
from enum import Enum

import numpy

from .datacenter import BANDWIDTH
from .errors import SchedulingError


class ExtendedFinishMode(Enum):
  """
  Defines how the possible extended finish time of a task is bounded by its neighbour on the VM.

  Let *exft* be the extended finish time, *ast* the task actual start time, *next* the task
  queued right after it on the same VM and *r* = ceil(length / max_speed_of_vm_type).

  - STRICT (default):
    min(exft, ast + r), additionally bounded by ast(next) when there is a next task.
    Slowing a task down never moves any other task.

  - LEGACY:
    without a next task same as STRICT, otherwise
    min(exft, ast(next) + r) if exft < ast else min(ast, ast(next) + r).
  """
  STRICT = 1
  LEGACY = 2


class _Remote(object):
  def __repr__(self):
    return "REMOTE"

# pseudo-host for tasks that are not placed yet: every input crosses the network
REMOTE = _Remote()


def cost_on_type(task, vm_type):
  """
  Monetary cost of the task on a fresh VM of the type (billed per started second).
  """
  return math.ceil(task.length / vm_type.max_speed) * vm_type.cost_per_second


def minimum_cost(task, vm_types):
  return min(cost_on_type(task, tau) for tau in vm_types)


def maximum_cost(task, vm_types):
  return max(cost_on_type(task, tau) for tau in vm_types)


def average_execution_time(task, vm_types):
  return float(numpy.mean([task.length / tau.max_speed for tau in vm_types]))


class TimingModel(object):
  """
  Timing model bound to a single schedule.

  Args:
    schedule: :class:`esdwb.schedule.Schedule` to evaluate
    bandwidth: network bandwidth between distinct VMs (Gbit/s)
  """
  def __init__(self, schedule, bandwidth=BANDWIDTH):
    self._schedule = schedule
    self._bandwidth = float(bandwidth)
    self.__generation = None
    self.__est = {}
    self.__lst = {}
    self.__ast = {}

  @property
  def schedule(self):
    return self._schedule

  @property
  def bandwidth(self):
    return self._bandwidth

  def _sync(self):
    if self.__generation != self._schedule.generation:
      self.__generation = self._schedule.generation
      self.__est = {}
      self.__lst = {}
      self.__ast = {}

  def _host(self, task, vm):
    if vm is None:
      return self._schedule.vm_of(task)
    if vm is REMOTE:
      return None
    return vm

  @staticmethod
  def _evaluate(cache, root, deps, compute):
    """
    Memoized evaluation of a recursive per-task quantity without python recursion.
    """
    stack = [root]
    expanded = set()
    while stack:
      task = stack[-1]
      if task.id in cache:
        stack.pop()
        continue
      pending = [dep for dep in deps(task) if dep.id not in cache]
      if pending:
        if task.id in expanded:
          raise SchedulingError("dependency cycle through task {}".format(task.id))
        expanded.add(task.id)
        stack.extend(pending)
      else:
        cache[task.id] = compute(task)
        stack.pop()
    return cache[root.id]

  # basic quantities

  def execution_time(self, task, vm=None):
    return task.length / self._host(task, vm).speed

  def transfer_time(self, task, parent, vm, parent_vm):
    """
    Time to deliver the parent output to the task (zero on the same VM).
    """
    if vm is not None and vm is parent_vm:
      return 0.
    return task.data_from(parent) / self._bandwidth

  def _edge_time(self, task, parent, vm=None):
    return self.transfer_time(task, parent, self._host(task, vm), self._schedule.vm_of(parent))

  # earliest / latest times (reference schedules)

  def earliest_start_time(self, task):
    self._sync()
    def compute(t):
      return max([self.__est[p.id] + self.execution_time(p) + self._edge_time(t, p) for p in t.predecessors],
                 default=0.)
    return self._evaluate(self.__est, task, lambda t: t.predecessors, compute)

  def earliest_finish_time(self, task):
    return self.earliest_start_time(task) + self.execution_time(task)

  def latest_start_time(self, task, makespan):
    self._sync()
    cache = self.__lst.setdefault(makespan, {})
    def compute(t):
      eet = self.execution_time(t)
      return min([cache[c.id] - self._edge_time(c, t) - eet for c in t.successors], default=makespan - eet)
    return self._evaluate(cache, task, lambda t: t.successors, compute)

  def latest_finish_time(self, task, makespan):
    return self.latest_start_time(task, makespan) + self.execution_time(task)

  def deadline(self, task, alpha, makespan):
    return alpha * self.latest_finish_time(task, makespan)

  # possible / actual times (schedule under construction)

  def possible_start_time(self, task, vm=None):
    """
    Time when all task inputs are available, ignoring contention on the VM.

    Args:
      task: task to evaluate
      vm: VM the task is (or would be) placed on; None means the assigned VM,
          :data:`REMOTE` means a VM not hosting any of the parents
    """
    host = self._host(task, vm)
    return max([self.actual_start_time(p) + self.execution_time(p)
                + self.transfer_time(task, p, host, self._schedule.vm_of(p)) for p in task.predecessors],
               default=0.)

  def _vm_deps(self, task):
    vm = self._schedule.vm_of(task)
    deps = list(task.predecessors)
    if self._schedule.has_task_before(task, vm):
      deps.append(self._schedule.task_before(task, vm))
    return deps

  def actual_start_time(self, task):
    self._sync()
    def compute(t):
      vm = self._schedule.vm_of(t)
      pst = self.possible_start_time(t)
      if not self._schedule.has_task_before(t, vm):
        return pst
      before = self._schedule.task_before(t, vm)
      return max(pst, self.__ast[before.id] + self.execution_time(before))
    return self._evaluate(self.__ast, task, self._vm_deps, compute)

  def actual_finish_time(self, task):
    return self.actual_start_time(task) + self.execution_time(task)

  @staticmethod
  def minimum_needed_speed(task, deadline, start_time):
    """
    Processing speed needed to finish the task by the deadline when started at start_time.
    """
    window = deadline - start_time
    if window <= 0:
      return float("inf")
    return task.length / window

  def extended_finish_time(self, task, actual_makespan):
    """
    Latest finish time of the task that does not delay any of its successors.
    """
    return min([self.actual_start_time(c) - self._edge_time(c, task) for c in task.successors],
               default=actual_makespan)

  def possible_extended_finish_time(self, task, actual_makespan, mode=ExtendedFinishMode.STRICT):
    vm = self._schedule.vm_of(task)
    exft = self.extended_finish_time(task, actual_makespan)
    ast = self.actual_start_time(task)
    ratio = math.ceil(task.length / vm.type.max_speed)
    if not self._schedule.has_task_after(task, vm):
      return min(exft, ast + ratio)
    next_ast = self.actual_start_time(self._schedule.task_after(task, vm))
    if mode == ExtendedFinishMode.LEGACY:
      return min(exft, next_ast + ratio) if exft < ast else min(ast, next_ast + ratio)
    return min(exft, next_ast, ast + ratio)

  # cost / energy / makespan

  def cost(self, task, vm=None):
    vm = self._host(task, vm)
    return math.ceil(self.execution_time(task, vm)) * vm.type.cost_per_second

  def energy(self, task, vm=None):
    vm = self._host(task, vm)
    return vm.power_consumption() * self.execution_time(task, vm)

  def estimated_makespan(self, workflow):
    return max([self.earliest_finish_time(t) for t in workflow.exit_tasks], default=0.)

  def actual_makespan(self, workflow):
    return max([self.actual_finish_time(t) for t in workflow.exit_tasks], default=0.)

  def total_cost(self, workflow):
    return sum(self.cost(t) for t in workflow)

  def total_energy(self, workflow):
    return sum(self.energy(t) for t in workflow)
