# -*- coding: utf-8 -*-
import pytest

from bestest import pattern


def test_default_format():
    regex = pattern.compile_format('{name}_{id}_{filename}.{extension}')
    match = regex.match('alice_1_01_Main.java')
    assert match is not None
    assert match.group('name') == 'alice'
    assert match.group('id') == '1'
    assert match.group('filename') == '01_Main'
    assert match.group('extension') == 'java'


def test_id_and_extension():
    regex = pattern.compile_format('{id}.{extension}')
    match = regex.match('s1234.zip')
    assert match.group('id') == 's1234'
    assert match.group('extension') == 'zip'


def test_compound_extension():
    regex = pattern.compile_format('{id}.{extension}')
    match = regex.match('42.tar.gz')
    assert match.group('id') == '42'
    assert match.group('extension') == 'tar.gz'


def test_literal_dot_is_escaped():
    regex = pattern.compile_format('{id}.{extension}')
    assert regex.match('42xjava') is None


def test_anchored():
    regex = pattern.compile_format('hw1_{id}.{extension}')
    assert regex.match('hw1_7.py') is not None
    assert regex.match('xhw1_7.py') is None
    assert regex.match('hw1_7.py.bak') is None


def test_name_with_spaces_and_apostrophes():
    regex = pattern.compile_format('{name}-{num}.{extension}')
    match = regex.match("Conan O'Brien-3.c")
    assert match.group('name') == "Conan O'Brien"
    assert match.group('num') == '3'


def test_repeated_placeholder_captured_once():
    regex = pattern.compile_format('{id}_{id}.{extension}')
    match = regex.match('12_34.py')
    assert match is not None
    assert match.group('id') == '12'


def test_unknown_placeholder():
    with pytest.raises(pattern.FormatError):
        pattern.compile_format('{student}.{extension}')


def test_malformed_braces():
    with pytest.raises(pattern.FormatError):
        pattern.compile_format('{id.{extension}')


def test_format_spec_rejected():
    with pytest.raises(pattern.FormatError):
        pattern.compile_format('{id:>3}.{extension}')


def test_placeholders():
    assert pattern.placeholders('{name}_{id}_{filename}.{extension}') == {'name', 'id', 'filename', 'extension'}
