"""
Workspace holding the inputs and outputs of a model-free analysis

Attributes set on a workspace are stored and, where possible, written to its
save directory:

 - ``fsl.data.image.Image`` values are saved as Nifti and held in memory only
   as an ``ImageProxy`` (reloaded on access)
 - Numbers, booleans and strings are recorded in ``_oxasl_mfree.yml``

Unset attributes return None, or the parent workspace's value for a
sub-workspace.
"""

import os
import sys
import errno
import glob
import tempfile

import yaml

from fsl.data.image import Image

from oxasl_mfree.utils import Tee

class ImageProxy(object):
    """
    Saved Image file name and metadata
    """
    def __init__(self, fname, md=None):
        self._fname = fname
        self._md = md

    def img(self):
        """
        :return: Image loaded from the saved file
        """
        img = Image(self._fname)
        for key, value in (self._md or {}).items():
            img.setMeta(key, value)
        return img

class Workspace(object):
    """
    A workspace for a model-free analysis

    Command line options are typically passed straight in as keyword
    arguments::

        options, _ = parser.parse_args()
        wsp = Workspace(savedir=options.output, **vars(options))

    Use ``set_item(name, value, save=False)`` to store a value without
    writing it to the save directory.
    """

    def __init__(self, savedir=None, parent=None, **kwargs):
        """
        :param savedir: Directory to save data to, created if needed. If not
                        given a temporary directory is used
        :param parent: Parent workspace, used for attributes not set in this one
        :param log: Stream for log output. Defaults to the parent's log, or
                    stdout plus a ``logfile`` in the save directory
        :param debug: If True, enable debug mode
        """
        # savedir must exist before anything else is set
        if savedir is None:
            self.set_item("savedir", tempfile.mkdtemp(prefix="oxasl_mfree_wsp"), save=False)
        else:
            self.set_item("savedir", os.path.abspath(savedir), save=False)
            mkdir(self.savedir, log=kwargs.get("log", parent.log if parent is not None else sys.stdout))

        self._parent = parent
        self._stuff = {}
        if "log" in kwargs or self.log is None:
            self.log = kwargs.pop("log", None)
            if self.log is None:
                self.log = Tee(sys.stdout, open(os.path.join(self.savedir, "logfile"), "w"))
        if "debug" in kwargs or self.debug is None:
            self.debug = kwargs.pop("debug", False)

        for key, value in kwargs.items():
            setattr(self, key, value)

    def __getattribute__(self, name):
        ret = super(Workspace, self).__getattribute__(name)
        if isinstance(ret, ImageProxy):
            return ret.img()
        return ret

    def __getattr__(self, name):
        if name.startswith("__"):
            raise AttributeError(name)
        parent = self.__dict__.get("_parent", None)
        if parent is not None:
            return getattr(parent, name)
        return None

    def __setattr__(self, name, value):
        self.set_item(name, value)

    def ifnone(self, attr, alternative):
        """
        :return: Value of ``attr`` if it is set and not None, otherwise ``alternative``
        """
        ret = getattr(self, attr, None)
        if ret is None:
            ret = alternative
        return ret

    def set_item(self, name, value, save=True):
        """
        Set an attribute, optionally without saving it

        :param name: Attribute name
        :param value: Value. None removes any previously saved file
        :param save: If False, do not write the value to the save directory
        """
        if save:
            for existing_file in glob.glob(os.path.join(self.savedir, "%s.*" % name)):
                os.remove(existing_file)

            if isinstance(value, Image):
                fname = os.path.join(self.savedir, name)
                value.save(fname)
                value.name = name
                value = ImageProxy(fname, md=dict(value.metaItems()))
            elif not name.startswith("_") and isinstance(value, (bool, int, float, str)):
                self._stuff[name] = value
                with open(os.path.join(self.savedir, "_oxasl_mfree.yml"), "w") as tfile:
                    yaml.dump(self._stuff, tfile, default_flow_style=False)

        super(Workspace, self).__setattr__(name, value)

    def sub(self, name, **kwargs):
        """
        Create a sub-workspace saving to a subdirectory of this one

        The sub-workspace falls back to this workspace for unset attributes
        (including the log) and is stored as attribute ``name``.
        """
        sub_wsp = Workspace(savedir=os.path.join(self.savedir, name), parent=self, **kwargs)
        self.set_item(name, sub_wsp, save=False)
        return sub_wsp

def mkdir(dirname, log=sys.stdout):
    """
    Create a directory and any parents, warning if it already exists
    """
    try:
        os.makedirs(dirname)
    except OSError as exc:
        if exc.errno != errno.EEXIST:
            raise
        log.write("WARNING: mkdir - Directory %s already exists\n" % dirname)
    return os.path.abspath(dirname)
