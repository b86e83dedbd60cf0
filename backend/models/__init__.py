from models.class_subject import ClassSubject
from models.department import Department
from models.pinned_timetable_slot import PinnedTimetableSlot
from models.room import Room
from models.room_unavailability import RoomUnavailability
from models.school import School
from models.school_class import SchoolClass
from models.school_level import SchoolLevel
from models.section import Section
from models.section_subject_requirement import SectionSubjectRequirement
from models.staff import Staff
from models.staff_subject_level import StaffSubjectLevel
from models.staff_unavailability import StaffUnavailability
from models.subject import Subject
from models.subject_school_level import SubjectSchoolLevel
from models.timetable_entry import TimetableEntry
from models.timetable_placement import TimetablePlacement
from models.timetable_run import TimetableRun

__all__ = [
	"ClassSubject",
	"Department",
	"PinnedTimetableSlot",
	"Room",
	"RoomUnavailability",
	"School",
	"SchoolClass",
	"SchoolLevel",
	"Section",
	"SectionSubjectRequirement",
	"Staff",
	"StaffSubjectLevel",
	"StaffUnavailability",
	"Subject",
	"SubjectSchoolLevel",
	"TimetableEntry",
	"TimetablePlacement",
	"TimetableRun",
]
