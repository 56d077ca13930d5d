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
import re

import networkx

from .errors import WorkflowError

# bytes -> Gbit
BYTES_TO_GBIT = 8.0 / 2 ** 30

_FILE_NAME_SEPARATORS = re.compile(r"[_.]")

FileItem = collections.namedtuple("FileItem", ["name", "size"])


class Task(object):
  """
  Workflow task.

  Attributes:
    id: graph-unique task id
    name: task (executable) name
    length: amount of work in MI, i.e. runtime on the reference machine * its speed
    predecessors: list of parent tasks
    successors: list of child tasks
    required_files: list of input :class:`FileItem` (sizes in bytes)
    transferred_data_size: dict predecessor_id -> Gbit sent by that predecessor
  """
  def __init__(self, id, name=None, length=0., required_files=None, transferred_data_size=None):
    self.id = id
    self.name = name if name is not None else id
    self.length = float(length)
    self.predecessors = []
    self.successors = []
    self.required_files = list(required_files) if required_files else []
    self.transferred_data_size = dict(transferred_data_size) if transferred_data_size else {}

  def add_predecessor(self, task):
    self.predecessors.append(task)

  def add_successor(self, task):
    self.successors.append(task)

  def compute_transferred_data_sizes(self):
    """
    Derive the amount of data sent by each predecessor from the input file list.

    File is attributed to a predecessor if the predecessor id is one of the file name
    tokens (name split on '_' and '.'). Repeated calls give the same result.
    """
    sizes = {}
    for parent in self.predecessors:
      for item in self.required_files:
        if parent.id in _FILE_NAME_SEPARATORS.split(item.name):
          sizes[parent.id] = sizes.get(parent.id, 0.) + item.size * BYTES_TO_GBIT
    self.transferred_data_size.update(sizes)

  def data_from(self, parent):
    return self.transferred_data_size.get(parent.id, 0.)

  def __repr__(self):
    return "Task(id={}, name={}, length={})".format(self.id, self.name, self.length)


def connect(parent, child):
  """
  Add a dependency edge keeping both sides of the relation consistent.
  """
  parent.add_successor(child)
  child.add_predecessor(parent)


class Workflow(object):
  """
  Validated task graph.

  Construction checks that ids are unique, every edge is known on both sides and
  that the graph is acyclic. Transferred data sizes are computed from input files.
  """
  def __init__(self, name, tasks):
    self.name = name
    self.__tasks = list(tasks)
    self.__by_id = {}
    self.__positions = {}
    for idx, task in enumerate(self.__tasks):
      if task.id in self.__by_id:
        raise WorkflowError("duplicate task id {}".format(task.id))
      self.__by_id[task.id] = task
      self.__positions[task.id] = idx
    self.__graph = self._build_graph()
    self.__order = list(networkx.lexicographical_topological_sort(self.__graph, key=self.index))
    for task in self.__tasks:
      task.compute_transferred_data_sizes()

  def _build_graph(self):
    graph = networkx.DiGraph()
    for task in self.__tasks:
      graph.add_node(task.id, weight=task.length)
    for task in self.__tasks:
      for child in task.successors:
        if self.__by_id.get(child.id) is not child:
          raise WorkflowError("task {} has unknown successor {}".format(task.id, child.id))
        if task not in child.predecessors:
          raise WorkflowError("edge {} -> {} is missing on the successor side".format(task.id, child.id))
        graph.add_edge(task.id, child.id)
      for parent in task.predecessors:
        if self.__by_id.get(parent.id) is not parent:
          raise WorkflowError("task {} has unknown predecessor {}".format(task.id, parent.id))
        if task not in parent.successors:
          raise WorkflowError("edge {} -> {} is missing on the predecessor side".format(parent.id, task.id))
    if not networkx.is_directed_acyclic_graph(graph):
      raise WorkflowError("workflow {} contains a cycle: {}".format(self.name, networkx.find_cycle(graph)))
    return graph

  @property
  def tasks(self):
    """
    Tasks in their original (ingestion) order.
    """
    return list(self.__tasks)

  def __len__(self):
    return len(self.__tasks)

  def __iter__(self):
    return iter(self.__tasks)

  def task(self, task_id):
    return self.__by_id[task_id]

  def index(self, task_id):
    """
    Position of the task in the ingestion order.
    """
    return self.__positions[task_id]

  @property
  def entry_tasks(self):
    return [t for t in self.__tasks if not t.predecessors]

  @property
  def exit_tasks(self):
    return [t for t in self.__tasks if not t.successors]

  def topological_order(self, reverse=False):
    """
    Topological order, ties broken by ingestion order.
    """
    order = [self.__by_id[task_id] for task_id in self.__order]
    if reverse:
      order.reverse()
    return order

  def get_task_graph(self):
    """
    Get workflow as a networkx.DiGraph of tasks.

    Task lengths and transferred data sizes are stored as a "weight" attribute of nodes and edges.
    """
    graph = networkx.DiGraph()
    for task in self.__tasks:
      graph.add_node(task, weight=task.length)
    for task in self.__tasks:
      for child in task.successors:
        graph.add_edge(task, child, weight=child.data_from(task))
    return graph

  def __repr__(self):
    return "Workflow(name={}, size={})".format(self.name, len(self.__tasks))
