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

from ..model import average_execution_time


class MinSelector(object):
  """
  Keep the value with the smallest key. On equal keys the first one wins.
  """
  def __init__(self):
    self.key = None
    self.value = None

  def update(self, key, value):
    if self.key is None or key < self.key:
      self.key = key
      self.value = value


class MaxSelector(object):
  """
  Keep the value with the largest key. On equal keys the first one wins.
  """
  def __init__(self):
    self.key = None
    self.value = None

  def update(self, key, value):
    if self.key is None or key > self.key:
      self.key = key
      self.value = value


def priorities(workflow, vm_types, model):
  """
  Critical-path priority of every task.

    priority(task) = mean_eet(task) + max_among_children(ECOMT(task, child) + priority(child))

  where mean_eet is averaged over all VM types and ECOMT is evaluated on the model schedule.

  Returns:
    dict task_id -> priority
  """
  schedule = model.schedule
  result = {}
  for task in workflow.topological_order(reverse=True):
    vm = schedule.vm_of(task)
    tail = max([model.transfer_time(child, task, schedule.vm_of(child), vm) + result[child.id]
                for child in task.successors], default=0.)
    result[task.id] = average_execution_time(task, vm_types) + tail
  return result


def priority_order(workflow, vm_types, model):
  """
  Tasks sorted by descending priority. Ties keep the topological order.

  Task priority is never lower than the priority of any of its children, so
  the result is also a topological order.

  Ties follow the lexicographic topological order (ingestion index), not the raw
  ingestion order, so a zero-length child never outranks its parent.
  """
  rank = priorities(workflow, vm_types, model)
  return sorted(workflow.topological_order(), key=lambda t: rank[t.id], reverse=True)
