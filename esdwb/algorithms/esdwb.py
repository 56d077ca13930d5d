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

import collections

import numpy

from ..datacenter import DataCenter
from ..errors import UnplaceableTaskError
from ..model import REMOTE, TimingModel, cost_on_type, maximum_cost, minimum_cost
from ..schedule import Schedule
from ..scheduler import Scheduler
from . import energy
from .naive import NaiveScheduler, cost_bounds
from .utils import MaxSelector, MinSelector, priority_order


LedgerRow = collections.namedtuple("LedgerRow", [
  "task", "surplus", "budget", "min_cost", "max_cost", "vm", "cost", "update", "tier"
])

LEDGER_HEADER = ["Task", "Surplus", "Budget", "Min. cost", "Max. cost", "Vm", "Cost", "Update", "Tier"]

TIER_REUSE = "reuse"
TIER_FRESH = "fresh"
TIER_FALLBACK = "fallback"


def within_budget(cost, budget):
  # carried surplus accumulates rounding errors
  return cost <= budget or bool(numpy.isclose(cost, budget, rtol=1e-9, atol=0.))


class ESDWB(Scheduler):
  """
  Energy-aware Scheduling under Deadline and Budget constraints for Workflows (ESDWB).

  Greedy list scheduler. Deadlines and priorities are derived from a reference schedule
  that places every task on its own VM of the fastest type.

  1. Sort tasks in decreasing priority order

     priority(task) = mean_eet(task) + max_among_children(ECOMT(task, child) + priority(child))

  2. For each task compute its deadline (alpha * LFT on the reference schedule) and its budget

     budget(task) = min_cost(task) + surplus

     where surplus is the unspent part of the workflow budget carried over from the
     previous tasks, initially beta * (max_cost(workflow) - min_cost(workflow)).

  3. Try to place the task, first tier that succeeds wins:

     * reuse - VMs of the task parents, largest data producer first; the task must
       meet both its deadline and its budget there
     * fresh - VM types fast enough to meet the deadline, slowest first; an idle VM of the
       type is reused if possible, otherwise a new one is launched; the task must meet its budget
     * fallback - fastest VM type the task can afford, deadline is ignored

     If no VM type is affordable at all :class:`esdwb.errors.UnplaceableTaskError` is raised.

  4. Charge the surplus with (cost - min_cost).

  After all tasks are placed, VM operating points are lowered where the slack permits
  (see :func:`esdwb.algorithms.energy.reduce_energy`).
  """
  NAME = "ESDWB"

  # order of candidate VM types by max speed in the fresh/fallback tiers
  SPEED_DESCENDING = False

  def __init__(self, workflow, vm_types=None, config=None):
    super(ESDWB, self).__init__(workflow, vm_types, config)
    self.__ledger = []
    self.__initial_surplus = None
    self.__surplus = None
    self.__data_center = None

  def initial_surplus(self, lowest_cost, highest_cost):
    return self.beta * (highest_cost - lowest_cost)

  def task_budget(self, task, min_cost, max_cost, surplus):
    return min_cost + surplus

  def next_surplus(self, surplus, budget, cost, min_cost):
    return surplus - self.surplus_update(budget, cost, min_cost)

  def surplus_update(self, budget, cost, min_cost):
    """
    Value reported in the ledger "Update" column.
    """
    return cost - min_cost

  @property
  def ledger(self):
    """
    Per-task budget trace of the last run (list of :class:`LedgerRow`).
    """
    return list(self.__ledger)

  @property
  def initial_surplus_budget(self):
    return self.__initial_surplus

  @property
  def surplus_budget(self):
    """
    Surplus left after the last placed task.
    """
    return self.__surplus

  @property
  def data_center(self):
    return self.__data_center

  def get_schedule(self):
    """
    Overriden.
    """
    workflow = self._workflow
    vm_types = self._vm_types
    self.__ledger = []
    self.__data_center = data_center = DataCenter(vm_types)

    fastest = NaiveScheduler.naive_schedule(workflow, data_center.find_fastest_type(), DataCenter(vm_types))
    reference = TimingModel(fastest, self.bandwidth)
    ordered_tasks = priority_order(workflow, vm_types, reference)
    estimated_makespan = reference.estimated_makespan(workflow)

    surplus = self.initial_surplus(*cost_bounds(workflow, vm_types))
    self.__initial_surplus = surplus
    self._log.debug("Estimated makespan: %f, initial surplus: %f", estimated_makespan, surplus)

    schedule = Schedule(self.NAME, workflow.name, len(workflow))
    model = TimingModel(schedule, self.bandwidth)
    for idx, task in enumerate(ordered_tasks):
      min_cost = minimum_cost(task, vm_types)
      max_cost = maximum_cost(task, vm_types)
      budget = self.task_budget(task, min_cost, max_cost, surplus)
      deadline = reference.deadline(task, self.alpha, estimated_makespan)

      vm, tier = None, TIER_REUSE
      if task.predecessors:
        vm = self._try_parent_vms(task, schedule, model, deadline, budget)
      if vm is None:
        vm, tier = self._try_fresh_vms(task, schedule, model, deadline, budget), TIER_FRESH
      if vm is None:
        vm, tier = self._force_affordable_vm(task, schedule, model, budget), TIER_FALLBACK

      cost = model.cost(task)
      row = LedgerRow(task.id, surplus, budget, min_cost, max_cost, vm.id, cost,
                      self.surplus_update(budget, cost, min_cost), tier)
      self.__ledger.append(row)
      surplus = self.next_surplus(surplus, budget, cost, min_cost)
      self._log.debug("[%d/%d] %s", idx + 1, len(ordered_tasks), row)

    self.__surplus = surplus
    actual_makespan = model.actual_makespan(workflow)
    energy.reduce_energy(workflow, model, actual_makespan, self.extended_finish_mode)
    return schedule, float(model.actual_makespan(workflow))

  def _try_parent_vms(self, task, schedule, model, deadline, budget):
    parents = sorted(task.predecessors, key=task.data_from, reverse=True)
    candidates = []
    for parent in parents:
      vm = schedule.vm_of(parent)
      if vm not in candidates:
        candidates.append(vm)
    for vm in candidates:
      schedule.assign(task, vm)
      if model.actual_finish_time(task) <= deadline and within_budget(model.cost(task), budget):
        return vm
      schedule.dismiss(task, vm)
    return None

  def _idle_or_new_vm(self, task, schedule, model, vm_type):
    vm = self.__data_center.find_idle_vm(schedule, task, vm_type, model)
    if vm is None:
      vm = self.__data_center.launch_new_vm(vm_type)
    return vm

  def _try_fresh_vms(self, task, schedule, model, deadline, budget):
    needed_speed = model.minimum_needed_speed(task, deadline, model.possible_start_time(task, REMOTE))
    vm_types = sorted([tau for tau in self._vm_types if tau.max_speed >= needed_speed],
                      key=lambda tau: tau.max_speed, reverse=self.SPEED_DESCENDING)
    for vm_type in vm_types:
      vm = self._idle_or_new_vm(task, schedule, model, vm_type)
      if within_budget(model.cost(task, vm), budget):
        schedule.assign(task, vm)
        return vm
    return None

  def _force_affordable_vm(self, task, schedule, model, budget):
    selector = MinSelector() if self.SPEED_DESCENDING else MaxSelector()
    for vm_type in self._vm_types:
      if within_budget(cost_on_type(task, vm_type), budget):
        selector.update(vm_type.max_speed, vm_type)
    if selector.value is None:
      raise UnplaceableTaskError(task, budget)
    self._log.debug("Task %s: no VM meets deadline within budget, forcing VM type %s", task.id, selector.value.id)
    vm = self._idle_or_new_vm(task, schedule, model, selector.value)
    schedule.assign(task, vm)
    return vm


class ModifiedESDWB(ESDWB):
  """
  Modified ESDWB.

  Differs from :class:`ESDWB` in two policies:

  * task budget does not depend on the carried surplus:

      budget(task) = min_cost(task) + beta * (max_cost(task) - min_cost(task))

    surplus is still tracked (budget - cost of the last task) and reported in the ledger

  * VM types in the fresh tier are tried fastest first and the fallback tier picks the
    slowest affordable type
  """
  NAME = "Modified-ESDWB"

  SPEED_DESCENDING = True

  def initial_surplus(self, lowest_cost, highest_cost):
    return 0.

  def task_budget(self, task, min_cost, max_cost, surplus):
    return min_cost + self.beta * (max_cost - min_cost)

  def next_surplus(self, surplus, budget, cost, min_cost):
    return budget - cost

  def surplus_update(self, budget, cost, min_cost):
    return budget - cost
