import os
from setuptools import setup


def local_path(*components):
  project_root = os.path.dirname(os.path.realpath(__file__))
  return os.path.normpath(os.path.join(project_root, *components))


def read_version():
  scope = {}
  with open(local_path("esdwb", "_version.py")) as version_file:
    exec(version_file.read(), scope)
  return scope["version"]


setup(name="esdwb",
      version=read_version(),
      author="esdwb contributors",
      description="Energy-aware deadline and budget constrained workflow scheduling for IaaS clouds",
      packages=["esdwb", "esdwb.algorithms", "esdwb.tools"],
      python_requires=">=3.6",
      install_requires=["networkx", "numpy", "matplotlib"],
      extras_require={"test": ["pytest"]})
