# This file is part of esdwb, an energy-aware deadline and budget constrained
# workflow scheduler for IaaS clouds.
#
# Copyright 2023 esdwb contributors
#
# License:  GNU LGPL v3 or later; see the header of any source file.

import os
import shutil
import tempfile
import textwrap
import unittest

from esdwb.errors import WorkflowError
from esdwb.tools.dax import load_dax, summary, workflow_name
from esdwb.workflow import BYTES_TO_GBIT

from workflow_fixtures import data_path


class TestDaxLoader(unittest.TestCase):
  def setUp(self):
    self.workflow = load_dax(data_path("Montage_5.xml"))

  def test_tasks(self):
    self.assertEqual(self.workflow.name, "Montage")
    self.assertEqual([t.id for t in self.workflow], ["ID%05d" % idx for idx in range(5)])
    task = self.workflow.task("ID00004")
    self.assertEqual(task.name, "mAdd")
    self.assertAlmostEqual(task.length, 30.34 * 1800.)
    self.assertEqual([f.name for f in task.required_files], ["c_ID00003.fits", "fit_ID00002.txt"])

  def test_edges(self):
    self.assertEqual([t.id for t in self.workflow.entry_tasks], ["ID00000", "ID00001"])
    self.assertEqual([t.id for t in self.workflow.exit_tasks], ["ID00004"])
    self.assertEqual([t.id for t in self.workflow.task("ID00004").predecessors], ["ID00003", "ID00002"])
    self.assertEqual([t.id for t in self.workflow.task("ID00000").successors], ["ID00002", "ID00003"])

  def test_transferred_data(self):
    diff_fit = self.workflow.task("ID00002")
    self.assertAlmostEqual(diff_fit.data_from(self.workflow.task("ID00000")), 4167312 * BYTES_TO_GBIT)
    self.assertAlmostEqual(diff_fit.data_from(self.workflow.task("ID00001")), 4182750 * BYTES_TO_GBIT)
    add = self.workflow.task("ID00004")
    self.assertAlmostEqual(add.data_from(self.workflow.task("ID00002")), 271 * BYTES_TO_GBIT)

  def test_reference_speed(self):
    workflow = load_dax(data_path("Montage_5.xml"), reference_speed=1000.)
    self.assertAlmostEqual(workflow.task("ID00000").length, 13590.)

  def test_summary(self):
    lines = summary(self.workflow)
    self.assertTrue(lines[0].startswith("Montage: 5 tasks, 5 edges, 2 entry, 1 exit, depth 3,"))
    self.assertEqual(len(lines), 6)
    self.assertTrue(lines[-1].startswith("  ID00004 mAdd"))

  def test_workflow_name(self):
    self.assertEqual(workflow_name("/tmp/CyberShake_1000.xml"), "CyberShake")
    self.assertEqual(workflow_name("plain.dax"), "plain.dax")


class TestMalformedDax(unittest.TestCase):
  def setUp(self):
    self.tmpdir = tempfile.mkdtemp()

  def tearDown(self):
    shutil.rmtree(self.tmpdir)

  def write(self, name, content):
    path = os.path.join(self.tmpdir, name)
    with open(path, "w") as dax_file:
      dax_file.write(textwrap.dedent(content))
    return path

  def test_unknown_parent(self):
    path = self.write("broken_1.xml", """\
      <adag>
        <job id="a" name="x" runtime="1.0"/>
        <child ref="a"><parent ref="b"/></child>
      </adag>
      """)
    with self.assertRaises(WorkflowError):
      load_dax(path)

  def test_cycle(self):
    path = self.write("cycle_2.xml", """\
      <adag>
        <job id="a" name="x" runtime="1.0"/>
        <job id="b" name="x" runtime="1.0"/>
        <child ref="a"><parent ref="b"/></child>
        <child ref="b"><parent ref="a"/></child>
      </adag>
      """)
    with self.assertRaises(WorkflowError):
      load_dax(path)

  def test_repeated_dependency(self):
    path = self.write("repeat_2.xml", """\
      <adag>
        <job id="a" name="x" runtime="1.0"/>
        <job id="b" name="x" runtime="1.0"/>
        <child ref="b"><parent ref="a"/><parent ref="a"/></child>
      </adag>
      """)
    workflow = load_dax(path)
    self.assertEqual(len(workflow.task("b").predecessors), 1)
    self.assertEqual(workflow.name, "repeat")


if __name__ == '__main__':
  unittest.main()
