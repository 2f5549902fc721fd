#!/usr/bin/env python
#  -*- mode: python; indent-tabs-mode: nil; -*- coding: UTF8 -*-

"""

ImageParser.py

Copyright 2024 by the unbook contributors

Distributable under the GNU General Public License Version 3 or newer.

Find out what a binary asset is, and maybe shrink it.

File extensions in ebooks lie often enough that we look at the bytes
first and only fall back to the extension when nothing else matches.

"""

import io
import mimetypes
import re

from PIL import Image, ImageFile

from libgutenberg.Logger import debug, error

from unbook.parsers import ParserBase

# works around problems with bad checksums in a small number of png files
ImageFile.LOAD_TRUNCATED_IMAGES = True

RASTER_TYPES = ('image/png', 'image/jpeg', 'image/gif', 'image/webp', 'image/bmp', 'image/tiff')

SIGNATURES = (
    (b'\x89PNG\r\n\x1a\n', 'image/png'),
    (b'\xff\xd8\xff', 'image/jpeg'),
    (b'GIF87a', 'image/gif'),
    (b'GIF89a', 'image/gif'),
    (b'wOFF', 'font/woff'),
    (b'wOF2', 'font/woff2'),
    (b'OTTO', 'font/otf'),
    (b'\x00\x01\x00\x00', 'font/ttf'),
    (b'true', 'font/ttf'),
    (b'ttcf', 'font/collection'),
    (b'ID3', 'audio/mpeg'),
    (b'OggS', 'audio/ogg'),
    (b'fLaC', 'audio/flac'),
    (b'%PDF-', 'application/pdf'),
)

REB_SVG = re.compile(br'^\s*(?:<\?xml[^>]*>\s*)?(?:<!--.*?-->\s*|<!DOCTYPE[^>]*>\s*)*<svg[\s>]', re.I | re.S)

DEFAULT_MEDIATYPE = 'application/octet-stream'


def sniff_mediatype(data, path=None):
    """ Return the media type of data, looking at the content first. """

    try:
        with Image.open(io.BytesIO(data)) as image:
            mediatype = Image.MIME.get(image.format)
            if mediatype:
                return mediatype
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError):
        pass

    for signature, mediatype in SIGNATURES:
        if data.startswith(signature):
            return mediatype

    if REB_SVG.match(data[:4096]):
        return 'image/svg+xml'

    if data[4:12] in (b'ftypmp41', b'ftypmp42', b'ftypisom'):
        return 'video/mp4'

    if path:
        mediatype = mimetypes.guess_type(path)[0]
        if mediatype:
            debug('Guessed media type %s of %s from its name' % (mediatype, path))
            return mediatype

    return DEFAULT_MEDIATYPE


class Parser(ParserBase):
    """Parse an image.

    And maybe shrink it to fit a size budget.

    """

    def __init__(self, path, data):
        ParserBase.__init__(self, path, data)
        self._mediatype = None
        self.dimen = None


    def mediatype(self):
        if self._mediatype is None:
            self._mediatype = sniff_mediatype(self.bytes_content(), self.path)
        return self._mediatype


    def is_raster(self):
        return self.mediatype() in RASTER_TYPES


    def resize_image(self, max_size):
        """ Return a parser with an image of at most max_size bytes.

        Returns self if there is nothing to do or nothing we can do.

        """

        def scale_image(image, scale):
            was = ''
            if scale < 1.0:
                dimen = (max(1, int(image.size[0] * scale)), max(1, int(image.size[1] * scale)))
                was = "(was %d x %d scale=%.2f) " % (image.size[0], image.size[1], scale)
                image = image.resize(dimen, Image.LANCZOS)
            return was, image

        def get_image_data(image, format_, quality=90):
            """ Format is the output format, not necessarily the input format """
            buf = io.BytesIO()
            if format_ == 'png':
                image.save(buf, 'png', optimize=True)
            else:
                image.save(buf, 'jpeg', quality=quality)
            return buf.getvalue()

        if not max_size or len(self.bytes_content()) <= max_size or not self.is_raster():
            return self

        try:
            unsized_image = Image.open(io.BytesIO(self.bytes_content()))

            format_ = 'jpeg' if unsized_image.format == 'JPEG' else 'png'
            if format_ == 'jpeg' and unsized_image.mode.lower() not in ('rgb', 'l'):
                unsized_image = unsized_image.convert('RGB')

            if 'dpi' in unsized_image.info:
                del unsized_image.info['dpi']

            scale = 1.0
            was, image = scale_image(unsized_image, scale)
            data = get_image_data(image, format_)

            if format_ == 'png':
                # scale it till it fits into max_size
                while len(data) > max_size and scale > 0.01:
                    scale = scale * 0.8
                    was, image = scale_image(unsized_image, scale)
                    data = get_image_data(image, format_)
            else:
                # find best quality that fits into max_size
                quality = 90
                for quality in (90, 85, 80, 70, 60, 50, 40, 30, 20, 10):
                    data = get_image_data(image, format_, quality=quality)
                    if len(data) <= max_size:
                        break
                was += 'q=%d' % quality

            debug("Image %s: %d x %d size=%d %s" % (
                self.path, image.size[0], image.size[1], len(data), was))

        except (OSError, ValueError) as what:
            error("Could not resize image: %s; message %s", self.path, what)
            return self

        if len(data) >= len(self.bytes_content()):
            return self

        new_parser = Parser(self.path, data)
        new_parser._mediatype = 'image/%s' % format_
        new_parser.dimen = tuple(image.size)
        return new_parser


    def get_image_dimen(self):
        if self.dimen is None:
            try:
                with Image.open(io.BytesIO(self.bytes_content())) as image:
                    self.dimen = image.size
            except (OSError, ValueError):
                error("Could not read image dimensions (probably broken): %s", self.path)
                self.dimen = (0, 0)  # broken image
        return self.dimen
