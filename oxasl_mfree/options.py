"""
Command line option parsing for oxasl_mfree

Copyright (c) 2008-2020 University of Oxford
"""
import sys
from optparse import OptionGroup, OptionParser, Option, OptionValueError
from copy import copy

from fsl.data.image import Image
from fsl.utils.path import PathError

from oxasl_mfree import __version__

def _check_image(option, opt, value):
    try:
        return Image(value)
    except (ValueError, IOError, PathError) as exc:
        raise OptionValueError("option %s: invalid Image value: %r (%s)" % (opt, value, exc))

class _ImageOption(Option):
    """
    Option class supporting ``type="image"`` which loads an fsl.data.image.Image
    """
    TYPES = Option.TYPES + ("image",)
    TYPE_CHECKER = copy(Option.TYPE_CHECKER)
    TYPE_CHECKER["image"] = _check_image

class AslOptionParser(OptionParser):
    """
    OptionParser with image options, option categories and option files

    Options may also be given in a file named by ``--optfile``, one per line
    (``--dt 0.3``, ``dt=0.3`` or ``dt: 0.3``), with ``#`` starting a comment.
    """
    def __init__(self, usage="", version=__version__, **kwargs):
        OptionParser.__init__(self, usage=usage, version=version, option_class=_ImageOption, **kwargs)

    def parse_args(self, argv=None, values=None):
        if argv is None:
            argv = sys.argv[1:]
        options, args = OptionParser.parse_args(self, argv, values)
        if getattr(options, "optfile", None):
            # Re-parse with the file contents appended so file options are
            # validated exactly like command line options
            options, args = OptionParser.parse_args(self, argv + _optfile_args(options.optfile), values)
        return options, args

    def add_category(self, category):
        """
        Add the option groups of an OptionCategory to the parser
        """
        for group in category.groups(self):
            self.add_option_group(group)

def _optfile_args(optfile):
    args = []
    with open(optfile, "r") as f:
        for line in f:
            line = line.split("#", 1)[0].strip()
            if not line:
                continue
            key_value = line.lstrip("-").replace(":", " ").replace("=", " ").split(None, 1)
            key = key_value[0]
            args.append("--" + key if len(key) > 1 else "-" + key)
            args.extend(key_value[1:])
    return args

class OptionCategory(object):
    """
    A named set of option groups
    """
    def __init__(self, name):
        self.name = name

    def groups(self, parser):
        """
        :param parser: OptionParser instance
        :return: Sequence of OptionGroup instances for this category of options
        """
        return []

class GenericOptions(OptionCategory):
    """
    Output, mask and debugging options
    """

    def __init__(self):
        OptionCategory.__init__(self, "generic")

    def groups(self, parser):
        group = OptionGroup(parser, "Generic")
        group.add_option("--output", "-o", help="Output directory", default=None)
        group.add_option("--overwrite", help="Overwrite output directory if it already exists", action="store_true", default=False)
        group.add_option("--mask", "-m", help="Brain mask image", default=None, type="image")
        group.add_option("--optfile", help="File containing additional options")
        group.add_option("--debug", help="Debug mode - show tracebacks on errors", action="store_true", default=False)
        return [group, ]
