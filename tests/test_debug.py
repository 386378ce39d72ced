import pytest

from polarfs.debug import KernelLog, KernelPanic


def make_log(**kwargs):
    serial, fb = [], []
    log = KernelLog(serial=serial.append, framebuffer=fb.append, **kwargs)
    return log, serial, fb


def test_kputchar_newline_adds_carriage_return():
    log, serial, fb = make_log()
    log.kputchar("\n")
    assert serial == ["\r", "\n"]
    assert fb == ["\r", "\n"]


def test_kputs_goes_to_both_sinks():
    log, serial, fb = make_log()
    log.kputs("abc")
    assert "".join(serial) == "abc"
    assert "".join(fb) == "abc"


def test_kprintf_silent_until_print_now():
    log, serial, fb = make_log()
    log.kprintf("hello %d\n", 1)
    assert serial == []
    assert fb == []


def test_kprintf_prefix_without_timer():
    log, serial, fb = make_log(print_now=True)
    log.kprintf("value %d\n", 5)
    assert "".join(serial) == "[0] value 5\r\n"
    assert "".join(fb) == "".join(serial)


def test_kprintf_prefix_uses_timer():
    log, serial, _ = make_log(print_now=True, timer=lambda: 42)
    log.kprintf("x")
    assert "".join(serial) == "[42] x"


def test_hex_dump_turns_framebuffer_off():
    log, serial, fb = make_log(print_now=True)
    log.hex_dump(b"AB")
    assert fb == []
    assert log.put_to_fb is False
    log.kprintf("later\n")
    assert fb == []
    assert "".join(serial).endswith("later\r\n")


def test_hex_dump_partial_line():
    log, serial, _ = make_log(print_now=True)
    log.hex_dump(b"ABC")
    text = "".join(serial)
    assert text.startswith("41 42 43 ")
    assert text.endswith("|  ABC \r\n")
    assert "[" not in text
    assert log.disable_prefix is False


def test_hex_dump_columns_line_up():
    log, serial, _ = make_log(print_now=True)
    log.hex_dump(bytes(range(65, 85)))
    lines = "".join(serial).split("\r\n")
    assert lines[-1] == ""
    lines = lines[:-1]
    assert len(lines) == 2
    assert lines[0].index("|") == lines[1].index("|")
    assert lines[0].endswith("|  ABCDEFGHIJKLMNOP ")
    assert lines[1].endswith("|  QRST ")


def test_hex_dump_eight_bytes_aligns_with_full_line():
    log, serial, _ = make_log(print_now=True)
    log.hex_dump(bytes(range(65, 81)) + bytes(range(97, 105)))
    lines = "".join(serial).split("\r\n")[:-1]
    assert len(lines) == 2
    assert lines[0].index("|") == lines[1].index("|")
    assert lines[1].endswith("|  abcdefgh ")


def test_hex_dump_nonprintable_as_dots():
    log, serial, _ = make_log(print_now=True)
    log.hex_dump(b"\x00A\x7f")
    text = "".join(serial)
    assert text.startswith("00 41 7F ")
    assert text.endswith("|  .A. \r\n")


def test_panic_raises_and_prints():
    log, serial, fb = make_log(print_now=True)
    log.put_to_fb = False
    with pytest.raises(KernelPanic) as exc:
        log.panic("boom %d", 7)
    assert exc.value.message == "boom 7"
    assert "*** PANIC:\tboom 7" in "".join(serial)
    assert "*** PANIC:\tboom 7" in "".join(fb)
    assert log.in_panic is True
    assert log.put_to_fb is True


def test_panic_prints_without_print_now():
    log, serial, _ = make_log()
    with pytest.raises(KernelPanic):
        log.panic("stop")
    assert "".join(serial) == "*** PANIC:\tstop"


def test_second_panic_reports_nested_panic():
    log, serial, _ = make_log(print_now=True)
    with pytest.raises(KernelPanic):
        log.panic("first")
    serial.clear()
    with pytest.raises(KernelPanic) as exc:
        log.panic("second")
    text = "".join(serial)
    assert "Pretty bad kernel panic here" in text
    assert text.endswith("*** PANIC:\tsecond")
    assert exc.value.message == "second"


def test_kprintf_after_panic_uses_panic_prefix():
    log, serial, _ = make_log(print_now=True, timer=lambda: 3)
    with pytest.raises(KernelPanic):
        log.panic("x")
    serial.clear()
    log.kprintf("after")
    assert "".join(serial) == "*** PANIC:\tafter"