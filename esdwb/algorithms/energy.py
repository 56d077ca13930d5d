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

import logging

from ..model import ExtendedFinishMode

_LOG = logging.getLogger("EnergyOptimizer")


def slowest_sufficient_point(vm_type, needed_speed):
  """
  Index of the slowest operating point with speed >= needed_speed (first one on ties), or None.
  """
  best = None
  for idx, speed in enumerate(vm_type.speeds):
    if speed >= needed_speed and (best is None or speed < vm_type.speeds[best]):
      best = idx
  return best


def reduce_energy(workflow, model, actual_makespan, mode=ExtendedFinishMode.STRICT):
  """
  Lower VM operating points where tasks have slack.

  Task has slack when its extended finish time exceeds its actual finish time. The slack is
  turned into a minimal processing speed within the possible extended finish time; every VM
  is then moved to the slowest point satisfying all of its tasks (tasks without slack demand
  the current speed). Speed is never raised.

  All decisions are taken on a single snapshot of task times, so the pass must run
  once the schedule and the order of tasks on every VM are final.

  Args:
    workflow: scheduled :class:`esdwb.workflow.Workflow`
    model: :class:`esdwb.model.TimingModel` of the final schedule
    actual_makespan: actual makespan of the schedule
    mode: :class:`esdwb.model.ExtendedFinishMode`

  Returns:
    dict vm_id -> (old_point, new_point) for every changed VM
  """
  schedule = model.schedule
  required = {}
  for task in workflow:
    vm = schedule.vm_of(task)
    needed = vm.speed
    if model.extended_finish_time(task, actual_makespan) > model.actual_finish_time(task):
      window = model.possible_extended_finish_time(task, actual_makespan, mode) - model.actual_start_time(task)
      if window > 0:
        needed = task.length / window
    required[vm.id] = max(required.get(vm.id, 0.), needed)

  changes = {}
  for vm in schedule.vms:
    point = slowest_sufficient_point(vm.type, required[vm.id])
    if point is None or not vm.type.speeds[point] < vm.speed:
      continue
    changes[vm.id] = (vm.point, point)
    _LOG.debug("VM %d: operating point %d -> %d (speed %.1f -> %.1f)",
               vm.id, vm.point, point, vm.speed, vm.type.speeds[point])
    vm.set_point(point)
  if changes:
    schedule.invalidate()
  return changes
