#!/usr/bin/env python
from typing import ClassVar

from .base import BaseElement
from davkit.lib.namespace import ns


# Operations
class Propfind(BaseElement):
    tag: ClassVar[str] = ns("D", "propfind")


# Components / Data
class Allprop(BaseElement):
    tag: ClassVar[str] = ns("D", "allprop")


class Prop(BaseElement):
    tag: ClassVar[str] = ns("D", "prop")


class Collection(BaseElement):
    tag: ClassVar[str] = ns("D", "collection")


# Properties
class ResourceType(BaseElement):
    tag: ClassVar[str] = ns("D", "resourcetype")


class DisplayName(BaseElement):
    tag: ClassVar[str] = ns("D", "displayname")


class GetEtag(BaseElement):
    tag: ClassVar[str] = ns("D", "getetag")


class GetContentType(BaseElement):
    tag: ClassVar[str] = ns("D", "getcontenttype")


class GetContentLength(BaseElement):
    tag: ClassVar[str] = ns("D", "getcontentlength")


class GetLastModified(BaseElement):
    tag: ClassVar[str] = ns("D", "getlastmodified")


class CreationDate(BaseElement):
    tag: ClassVar[str] = ns("D", "creationdate")


# Multistatus
class MultiStatus(BaseElement):
    tag: ClassVar[str] = ns("D", "multistatus")


class Response(BaseElement):
    tag: ClassVar[str] = ns("D", "response")


class Href(BaseElement):
    tag: ClassVar[str] = ns("D", "href")


class PropStat(BaseElement):
    tag: ClassVar[str] = ns("D", "propstat")


class Status(BaseElement):
    tag: ClassVar[str] = ns("D", "status")
