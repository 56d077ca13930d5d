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
Pegasus DAX workflow loader.

Usage::

    python -m esdwb.tools.dax [-h] [-s SPEED] input_file

Only the parts of the format used by the scheduler are read:

* ``job`` elements (id, name, runtime) and their ``uses`` entries with ``link="input"``
* ``child``/``parent`` dependency elements
"""

import argparse
import os
import xml.etree.ElementTree as ET

import networkx

from ..errors import WorkflowError
from ..workflow import FileItem, Task, Workflow, connect

# top speed of the cheapest default VM type, MIPS
REFERENCE_SPEED = 1800.


def strip_namespace(tag):
    if '}' in tag:
        tag = tag.split('}', 1)[1]
    return tag


def workflow_name(path):
    """
    Workflow name is the file base name up to the first underscore (Montage_25.xml -> Montage).
    """
    return os.path.basename(path).split("_")[0]


def load_dax(path, reference_speed=REFERENCE_SPEED):
    """
    Load a workflow from a DAX file.

    Args:
      path: path to the DAX file
      reference_speed: speed (MIPS) the job runtimes were measured at

    Returns:
      :class:`esdwb.workflow.Workflow`
    """
    tree = ET.parse(path)
    tasks = []
    tasks_by_id = {}
    for el in tree.getroot():
        tag = strip_namespace(el.tag).lower()
        if tag == 'job':
            task_id = el.attrib['id']
            input_files = []
            for sub_el in el:
                if strip_namespace(sub_el.tag) != 'uses':
                    continue
                if sub_el.attrib.get('link', '').lower() == 'input':
                    input_files.append(FileItem(sub_el.attrib['file'], float(sub_el.attrib['size'])))
            task = Task(task_id, el.attrib.get('name', task_id),
                        float(el.attrib['runtime']) * reference_speed, input_files)
            tasks.append(task)
            tasks_by_id[task_id] = task
        elif tag == 'child':
            child = _lookup(tasks_by_id, el.attrib['ref'], path)
            for sub_el in el:
                if strip_namespace(sub_el.tag) != 'parent':
                    continue
                parent = _lookup(tasks_by_id, sub_el.attrib['ref'], path)
                if parent not in child.predecessors:
                    connect(parent, child)
    return Workflow(workflow_name(path), tasks)


def _lookup(tasks_by_id, task_id, path):
    try:
        return tasks_by_id[task_id]
    except KeyError:
        raise WorkflowError("%s: dependency refers to unknown job %s" % (path, task_id))


def summary(workflow):
    """
    Text summary of a workflow: size, edges, depth and one line per task in topological order.
    """
    graph = workflow.get_task_graph()
    depth = len(networkx.dag_longest_path(graph, weight=None)) if len(workflow) else 0
    data = sum(weight for _, _, weight in graph.edges(data="weight"))
    lines = ["%s: %d tasks, %d edges, %d entry, %d exit, depth %d, %.3f Gbit transferred" % (
        workflow.name, graph.number_of_nodes(), graph.number_of_edges(),
        len(workflow.entry_tasks), len(workflow.exit_tasks), depth, data)]
    for task in workflow.topological_order():
        lines.append("  %s %s length=%.1f parents=%s" % (task.id, task.name, task.length,
                                                        ",".join(p.id for p in task.predecessors)))
    return lines


def main():
    parser = argparse.ArgumentParser(description="Print a summary of a DAX workflow")
    parser.add_argument("input_file", type=str, help="path to DAX file")
    parser.add_argument("-s", "--speed", type=float, default=REFERENCE_SPEED,
                        help="speed in MIPS used to convert task runtime to length, default value is %.0f"
                             % REFERENCE_SPEED)
    args = parser.parse_args()

    workflow = load_dax(args.input_file, args.speed)
    for line in summary(workflow):
        print(line)


if __name__ == "__main__":
    main()
