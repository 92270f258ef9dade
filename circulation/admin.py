from django.contrib import admin
from .models import Loan, LoanStatus, Person, PersonType, Resource


@admin.register(PersonType)
class PersonTypeAdmin(admin.ModelAdmin):
    list_display = ('name', 'description', 'active')


@admin.register(Person)
class PersonAdmin(admin.ModelAdmin):
    list_display = ('last_name', 'first_name', 'document_number', 'grade', 'person_type', 'active')
    list_filter = ('person_type', 'active')
    search_fields = ('first_name', 'last_name', 'document_number')


@admin.register(Resource)
class ResourceAdmin(admin.ModelAdmin):
    list_display = ('title', 'kind', 'isbn', 'total_quantity', 'current_loans_count', 'available', 'condition')
    list_filter = ('kind', 'condition', 'available')
    search_fields = ('title', 'isbn')
    # Counters move only through loans; fix drift with sync_loan_counts.
    readonly_fields = ('current_loans_count', 'total_loans', 'last_loan_date')


@admin.register(LoanStatus)
class LoanStatusAdmin(admin.ModelAdmin):
    list_display = ('name', 'description', 'color', 'active')


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    list_display = ('id', 'person', 'resource', 'quantity', 'loan_date', 'due_date', 'returned_date', 'status')
    list_filter = ('status',)
    search_fields = ('person__last_name', 'person__document_number', 'resource__title')
    list_select_related = ('person', 'resource', 'status')
    date_hierarchy = 'loan_date'
